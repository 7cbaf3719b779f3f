"""Rovel main application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rovel import __version__
from rovel.api import content_router, reader_router, router
from rovel.api.deps import validate_auth_config
from rovel.config import Settings, settings
from rovel.container import Services, build_services, start_services, stop_services
from rovel.errors import BadInput, StoreUnavailable, UploadTooLarge

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("rovel")


def create_app(
    app_settings: Optional[Settings] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """Build the application; `services` is built at startup when not given."""
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting Rovel server...")
        logger.info(f"Environment: {app_settings.env.value}")

        # Fail fast on insecure configuration
        validate_auth_config(app_settings)

        running = services or build_services(app_settings)
        app.state.services = running
        await start_services(running)
        logger.info("Store connected, lease sweep started")

        yield

        logger.info("Shutting down Rovel server...")
        await stop_services(running)
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Rovel",
        description="Manga/novel content server with ad-gated chapter unlocks",
        version=__version__,
        lifespan=lifespan,
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_allowed_origins,
        allow_credentials=app_settings.cors_allow_credentials,
        allow_methods=app_settings.cors_allowed_methods,
        allow_headers=app_settings.cors_allowed_headers,
    )

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=503, content={"detail": exc.message, "code": exc.code})

    @app.exception_handler(BadInput)
    async def bad_input_handler(request: Request, exc: BadInput):
        return JSONResponse(status_code=400, content={"detail": exc.message, "code": exc.code})

    @app.exception_handler(UploadTooLarge)
    async def upload_too_large_handler(request: Request, exc: UploadTooLarge):
        return JSONResponse(status_code=413, content={"detail": exc.message, "code": exc.code})

    app.include_router(reader_router)
    app.include_router(router)
    app.include_router(content_router)
    return app


app = create_app()


def main():
    """Entry point for the application."""
    uvicorn.run(
        "rovel.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
