"""
Pytest configuration and shared fixtures for idempotent_quotes tests.
"""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from prometheus_client import CollectorRegistry

from idempotent_quotes.config import QuotesConfig
from idempotent_quotes.models import CreateQuoteCommand, CreateQuoteRequest, IdempotencyRecord
from idempotent_quotes.observability.metrics import PrometheusMetricsSink
from idempotent_quotes.storage.memory import MemoryStorageAdapter

API_TOKEN = "test-token"


class RecordingMetricsSink:
    """Metrics sink that counts events in memory."""

    def __init__(self) -> None:
        self.created = 0
        self.replayed = 0
        self.conflicts = 0
        self.unavailable = 0

    def quote_created(self) -> None:
        self.created += 1

    def idempotency_replayed(self) -> None:
        self.replayed += 1

    def idempotency_conflict(self) -> None:
        self.conflicts += 1

    def dependency_unavailable(self) -> None:
        self.unavailable += 1


def make_request(
    document_id: str = "DOC-3",
    amount: str | int = 30,
    currency: str = "clp",
) -> CreateQuoteRequest:
    return CreateQuoteRequest(documentId=document_id, amount=Decimal(str(amount)), currency=currency)


def make_command(key: str = "idem-123", **request_fields) -> CreateQuoteCommand:
    return CreateQuoteCommand(idempotency_key=key, request=make_request(**request_fields))


def make_record(key: str = "idem-123", fingerprint: str = "a" * 64, body: str = "{}") -> IdempotencyRecord:
    return IdempotencyRecord(
        key=key,
        fingerprint=fingerprint,
        status_code=201,
        response_body=body,
        created_at=datetime.now(UTC),
    )


@pytest.fixture
def storage() -> MemoryStorageAdapter:
    """Create a fresh memory storage adapter for each test."""
    return MemoryStorageAdapter()


@pytest.fixture
def config() -> QuotesConfig:
    """Create a standard config for testing."""
    return QuotesConfig(api_tokens=[API_TOKEN], store_timeout_seconds=2.0)


@pytest.fixture
def metrics() -> RecordingMetricsSink:
    return RecordingMetricsSink()


@pytest.fixture
def prometheus_metrics() -> PrometheusMetricsSink:
    """Prometheus sink on a private registry."""
    return PrometheusMetricsSink(CollectorRegistry())


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {API_TOKEN}"}


@pytest.fixture
def request_factory():
    """Build CreateQuoteRequest objects; defaults match the DOC-3 example."""
    return make_request


@pytest.fixture
def command_factory():
    """Build CreateQuoteCommand objects from a key and request fields."""
    return make_command


@pytest.fixture
def record_factory():
    """Build IdempotencyRecord objects."""
    return make_record
