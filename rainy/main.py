"""
FastAPI application entrypoint for the OneDrive integration.
"""

from __future__ import annotations

from fastapi import FastAPI

from rainy.api.routes import page_router
from rainy.api.routes import router as api_router
from rainy.core.config import get_settings
from rainy.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="rainy",
        version="0.1.0",
        description="Microsoft Graph sign-in, OneDrive search and file picker glue.",
    )
    app.include_router(page_router)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
