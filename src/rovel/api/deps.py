"""API dependencies."""

import logging
import secrets

from fastapi import Depends, Header, HTTPException, Request

from rovel.config import Environment, Settings
from rovel.container import Services
from rovel.engine import (
    AccessGate,
    AdsConfigService,
    CatalogService,
    LeaseManager,
    UploadService,
    UserService,
)

logger = logging.getLogger("rovel.api")


def get_services(request: Request) -> Services:
    """Services built by the application lifespan."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return services


def get_lease_manager(services: Services = Depends(get_services)) -> LeaseManager:
    return services.leases


def get_access_gate(services: Services = Depends(get_services)) -> AccessGate:
    return services.gate


def get_catalog(services: Services = Depends(get_services)) -> CatalogService:
    return services.catalog


def get_user_service(services: Services = Depends(get_services)) -> UserService:
    return services.users


def get_ads_service(services: Services = Depends(get_services)) -> AdsConfigService:
    return services.ads


def get_upload_service(services: Services = Depends(get_services)) -> UploadService:
    return services.uploads


async def verify_admin_key(
    authorization: str | None = Header(None),
    x_api_key: str | None = Header(None, alias="X-API-Key"),
    services: Services = Depends(get_services),
) -> None:
    """
    Guard administrative routes with the shared admin key.

    Accepts `Authorization: Bearer <key>` or `X-API-Key`. Fails closed:
    with no key configured, admin routes answer 503 unless insecure
    development mode is explicitly enabled.
    """
    settings = services.settings
    if settings.admin_auth_bypassed:
        return

    api_key = None
    if authorization and authorization.startswith("Bearer "):
        api_key = authorization[7:]
    elif x_api_key:
        api_key = x_api_key

    if not settings.admin_api_key:
        logger.error(
            "Admin route called but ROVEL_ADMIN_API_KEY is not configured"
        )
        raise HTTPException(
            status_code=503,
            detail="Server misconfigured: admin authentication not initialized",
        )

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Missing authorization. Use Authorization: Bearer <key> or X-API-Key header",
        )

    if not secrets.compare_digest(api_key, settings.admin_api_key):
        raise HTTPException(status_code=401, detail="Invalid API key")


def validate_auth_config(settings: Settings) -> None:
    """
    Validate admin authentication configuration at startup.

    Raises:
        RuntimeError: If insecure dev mode is enabled outside development
    """
    if settings.allow_insecure_dev and settings.env != Environment.DEVELOPMENT:
        raise RuntimeError(
            f"SECURITY ERROR: allow_insecure_dev=true is only permitted in development. "
            f"Current environment: {settings.env.value}. "
            f"Set ROVEL_ALLOW_INSECURE_DEV=false for {settings.env.value}."
        )

    if settings.admin_auth_bypassed:
        logger.warning("Running in INSECURE DEV MODE: admin routes are unauthenticated")
    elif not settings.admin_api_key:
        logger.warning("No ROVEL_ADMIN_API_KEY configured; admin routes will answer 503")
