"""
Application lifecycle event handlers.

Startup configures logging and opens the ledger provider and the session
registry; shutdown closes every session and the provider's transport.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings
from core.logging import configure_structlog
from repositories.provider import LedgerProvider
from services.auth_service import SessionRegistry

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        configure_structlog(
            environment=settings.APP_ENV,
            level=settings.LOG_LEVEL,
        )
        logger.info("app_starting", app=settings.APP_NAME, env=settings.APP_ENV)

        provider = LedgerProvider.from_settings(settings)
        app.state.ledger_provider = provider
        app.state.sessions = SessionRegistry(provider)

        logger.info("app_started", ledger_backend=provider.backend)

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("app_stopping", app=settings.APP_NAME)

        sessions: SessionRegistry | None = getattr(app.state, "sessions", None)
        if sessions is not None:
            sessions.close_all()

        provider: LedgerProvider | None = getattr(app.state, "ledger_provider", None)
        if provider is not None:
            await provider.close()

        logger.info("app_stopped")

    return stop_app
