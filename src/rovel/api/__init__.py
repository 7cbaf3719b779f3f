"""Rovel REST API."""

from rovel.api.content import router as content_router
from rovel.api.router import reader_router, router

__all__ = ["content_router", "reader_router", "router"]
