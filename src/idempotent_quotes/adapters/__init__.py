"""ASGI middleware adapters for the quotes API."""

from idempotent_quotes.adapters.asgi import (
    CorrelationIdMiddleware,
    DependencyFailureMiddleware,
    RequestLoggingMiddleware,
)

__all__ = [
    "CorrelationIdMiddleware",
    "DependencyFailureMiddleware",
    "RequestLoggingMiddleware",
]
