"""Structured logging configuration for the quotes service.

Logs are emitted through structlog as event names with key/value context.
Request-scoped values such as the correlation id are bound into structlog's
context variables by the ASGI middleware and merged into every log line
written while the request is handled.

Examples:
    Configure logging::

        from idempotent_quotes.observability.logging import configure_logging

        configure_logging(level="INFO", json_output=True)

    Use the logger::

        from idempotent_quotes.observability.logging import get_logger

        logger = get_logger(__name__)
        logger.info("quote.created", key="idem-123", quote_id=str(quote.id))

    Output (JSON)::

        {
            "event": "quote.created",
            "key": "idem-123",
            "quote_id": "8d7c...",
            "correlation_id": "5b0e...",
            "timestamp": "2024-01-01T00:00:00.000000Z",
            "level": "info"
        }
"""

import logging
import sys
from typing import Any

import structlog


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """Configure structured logging for the application.

    Call once at startup, before the first log line is written.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, emit JSON logs; if False, use console format
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ from the calling module)

    Returns:
        A structlog logger instance
    """
    return structlog.get_logger(name)


def bind_correlation_id(correlation_id: str) -> None:
    """Attach a correlation id to every log line of the current context."""
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
