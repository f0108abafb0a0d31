"""
Structured logging configuration with structlog.

Production emits one JSON object per line; every other environment gets the
colored console renderer. The level comes from the LOG_LEVEL setting.

Usage:
    from core.logging import configure_structlog

    configure_structlog(environment=settings.APP_ENV, level=settings.LOG_LEVEL)

    logger = structlog.get_logger(__name__)
    logger.info("command_confirmed", action="start_election", post="President")
"""

import logging

import structlog
from structlog.typing import Processor


def _resolve_level(level_name: str) -> int:
    return getattr(logging, level_name.upper(), logging.INFO)


def configure_structlog(environment: str = "production", level: str = "INFO") -> None:
    """
    Configure structlog for the application.

    Should be called once at application startup.

    Args:
        environment: 'production' for JSON output, anything else for console output
        level: Minimum log level name (DEBUG, INFO, WARNING, ...)
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if environment == "production":
        final_processor: Processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [final_processor],
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
