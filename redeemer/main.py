"""
FastAPI application entrypoint for the redemption webhook.
"""

from __future__ import annotations

from fastapi import FastAPI

from redeemer.api.routes import router as api_router
from redeemer.core.config import get_settings
from redeemer.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Issue Redeemer",
        version="0.1.0",
        description="Redeems license codes submitted as GitHub issues.",
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
