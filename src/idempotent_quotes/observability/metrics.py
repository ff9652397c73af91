"""Metrics sinks for the quotes service.

The orchestrator reports every terminal decision to an injected
``MetricsSink`` rather than to process-wide counters. The Prometheus
implementation registers its counters on a caller-supplied registry, so
several applications (or tests) in one process never collide.

Metrics:

- ``quotes_created_total``: quotes successfully created
- ``idempotency_replays_total``: stored responses replayed
- ``idempotency_conflicts_total``: keys reused with a different payload
- ``db_unavailable_total``: requests failed because the store was unavailable

Examples:
    Wiring a sink::

        from prometheus_client import CollectorRegistry
        from idempotent_quotes.observability.metrics import PrometheusMetricsSink

        registry = CollectorRegistry()
        metrics = PrometheusMetricsSink(registry)
        metrics.quote_created()
"""

from typing import Protocol, runtime_checkable

from prometheus_client import CollectorRegistry, Counter, generate_latest


@runtime_checkable
class MetricsSink(Protocol):
    """Receiver for quote and idempotency outcome events."""

    def quote_created(self) -> None: ...

    def idempotency_replayed(self) -> None: ...

    def idempotency_conflict(self) -> None: ...

    def dependency_unavailable(self) -> None: ...


class NullMetricsSink:
    """Metrics sink that discards every event."""

    def quote_created(self) -> None:
        pass

    def idempotency_replayed(self) -> None:
        pass

    def idempotency_conflict(self) -> None:
        pass

    def dependency_unavailable(self) -> None:
        pass


class PrometheusMetricsSink:
    """Metrics sink backed by Prometheus counters.

    Attributes:
        registry: The registry the counters are registered on
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Create the counters on the given registry.

        Args:
            registry: Target registry; a new private registry if omitted
        """
        self.registry = registry if registry is not None else CollectorRegistry()

        self.quotes_created_total = Counter(
            "quotes_created",
            "Total number of quotes successfully created",
            registry=self.registry,
        )
        self.idempotency_replays_total = Counter(
            "idempotency_replays",
            "Total number of idempotent replays",
            registry=self.registry,
        )
        self.idempotency_conflicts_total = Counter(
            "idempotency_conflicts",
            "Total number of idempotency keys reused with a different payload",
            registry=self.registry,
        )
        self.db_unavailable_total = Counter(
            "db_unavailable",
            "Total number of requests that failed due to DB unavailability",
            registry=self.registry,
        )

    def quote_created(self) -> None:
        self.quotes_created_total.inc()

    def idempotency_replayed(self) -> None:
        self.idempotency_replays_total.inc()

    def idempotency_conflict(self) -> None:
        self.idempotency_conflicts_total.inc()

    def dependency_unavailable(self) -> None:
        self.db_unavailable_total.inc()

    def render(self) -> bytes:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(self.registry)
