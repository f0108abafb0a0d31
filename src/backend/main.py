"""
TrustChain Backend Application

Election management client for a ledger-backed voting system.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.v1 import router as api_v1_router
from core.config import settings
from core.events import create_start_app_handler, create_stop_app_handler
from core.exceptions import CommandInProgress, FetchFailure, RejectedCommand, ValidationError
from core.middleware import REQUEST_ID_HEADER, RequestContextMiddleware

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    # Startup
    await create_start_app_handler(app)()
    yield
    # Shutdown
    await create_stop_app_handler(app)()


def _error(status_code: int, exc: Exception, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "error_type": type(exc).__name__},
    )


def register_exception_handlers(application: FastAPI) -> None:
    """Map the client error taxonomy onto HTTP responses."""

    @application.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        logger.info("validation_failed", path=request.url.path, field=exc.field, error=exc.message)
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, exc, exc.message)

    @application.exception_handler(RejectedCommand)
    async def rejected_command_handler(request: Request, exc: RejectedCommand) -> JSONResponse:
        # The ledger's reason is surfaced verbatim
        return _error(status.HTTP_409_CONFLICT, exc, exc.reason)

    @application.exception_handler(CommandInProgress)
    async def command_in_progress_handler(request: Request, exc: CommandInProgress) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, exc, exc.message)

    @application.exception_handler(FetchFailure)
    async def fetch_failure_handler(request: Request, exc: FetchFailure) -> JSONResponse:
        logger.warning("fetch_failed", path=request.url.path, error=exc.message)
        return _error(status.HTTP_502_BAD_GATEWAY, exc, exc.message)

    @application.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Catch unhandled exceptions.

        Ensures error responses still pass through the CORS middleware with a
        structured JSON body.
        """
        logger.exception(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "An internal server error occurred. Please try again later.",
                "error_type": type(exc).__name__ if settings.DEBUG else "InternalServerError",
            },
        )


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title=settings.APP_NAME,
        description="Election management over a shared voting ledger",
        version="1.0.0",
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # Add middleware (order matters - processed in reverse)
    application.add_middleware(RequestContextMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Session-ID", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, "Content-Disposition"],
    )

    application.include_router(api_v1_router, prefix="/api/v1")
    register_exception_handlers(application)

    @application.get("/health", tags=["Health"])
    async def health_check(request: Request) -> dict[str, str]:
        """Health check endpoint for load balancers and monitoring."""
        provider = getattr(request.app.state, "ledger_provider", None)
        return {
            "status": "healthy",
            "service": "trustchain-api",
            "ledger_backend": provider.backend if provider is not None else "unavailable",
        }

    @application.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.APP_NAME,
            "version": "1.0.0",
            "docs": "/docs" if settings.DEBUG else "Documentation disabled in production",
        }

    return application


app = create_application()
