"""Observability utilities for the quotes service.

This package provides:
- Structured logging with request-scoped context (structlog)
- Metrics sinks for creation, replay and conflict outcomes (Prometheus)
"""

from idempotent_quotes.observability.logging import (
    bind_correlation_id,
    clear_request_context,
    configure_logging,
    get_logger,
)
from idempotent_quotes.observability.metrics import (
    MetricsSink,
    NullMetricsSink,
    PrometheusMetricsSink,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_correlation_id",
    "clear_request_context",
    "MetricsSink",
    "NullMetricsSink",
    "PrometheusMetricsSink",
]
