"""Unit tests for QuoteOrchestrator.

This test suite covers:
    - First request creates a quote and a record in one commit
    - Same key and payload replays the stored body
    - Same key and different payload conflicts without writing
    - Concurrent first requests create exactly one quote
    - Store outages and timeouts surface as StorageUnavailableError
    - Quote normalization and metrics reporting
"""

import asyncio
import json
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

import pytest

from idempotent_quotes.config import QuotesConfig
from idempotent_quotes.core.orchestrator import CreateQuoteResult, QuoteOrchestrator
from idempotent_quotes.exceptions import (
    DuplicateKeyError,
    QuoteErrorKind,
    StorageUnavailableError,
)
from idempotent_quotes.fingerprint import fingerprint_request
from idempotent_quotes.storage.memory import MemoryStorageAdapter

FIXED_NOW = datetime(2025, 1, 15, 12, 30, tzinfo=UTC)
FIXED_ID = UUID("6f1c5a3e-8a4b-4c1e-9d2f-0a1b2c3d4e5f")


@pytest.fixture
def orchestrator(storage, metrics, config):
    return QuoteOrchestrator(storage, metrics, config)


# ============================================================================
# Create and replay
# ============================================================================


@pytest.mark.asyncio
async def test_first_request_creates_quote(orchestrator, storage, command_factory):
    result = await orchestrator.create(command_factory("idem-123"))

    assert result.status_code == 201
    assert result.is_replay is False
    assert result.error is None
    assert await storage.count_quotes() == 1
    assert await storage.count_records() == 1


@pytest.mark.asyncio
async def test_created_quote_is_normalized(storage, metrics, config, command_factory):
    orchestrator = QuoteOrchestrator(
        storage, metrics, config, clock=lambda: FIXED_NOW, id_factory=lambda: FIXED_ID
    )

    result = await orchestrator.create(command_factory("idem-1", document_id=" DOC-3 ", currency="clp"))

    body = json.loads(result.body)
    assert body == {
        "id": str(FIXED_ID),
        "documentId": "DOC-3",
        "amount": 30.0,
        "currency": "CLP",
        "status": "ISSUED",
        "createdAt": "2025-01-15T12:30:00Z",
    }

    stored = await storage.get_quote(FIXED_ID)
    assert stored is not None
    assert stored.currency == "CLP"
    assert stored.document_id == "DOC-3"
    assert stored.amount == Decimal("30")


@pytest.mark.asyncio
async def test_record_stores_raw_fingerprint_and_exact_body(orchestrator, storage, command_factory):
    command = command_factory("idem-123")

    result = await orchestrator.create(command)

    record = await storage.find("idem-123")
    assert record is not None
    assert record.fingerprint == fingerprint_request(command.request)
    assert record.status_code == 201
    assert record.response_body == result.body


@pytest.mark.asyncio
async def test_same_payload_replays_identical_body(orchestrator, storage, command_factory):
    first = await orchestrator.create(command_factory("idem-123"))
    second = await orchestrator.create(command_factory("idem-123"))

    assert second.status_code == 201
    assert second.is_replay is True
    assert second.body == first.body
    assert await storage.count_quotes() == 1


@pytest.mark.asyncio
async def test_replay_returns_same_id_and_created_at(orchestrator, command_factory):
    first = await orchestrator.create(command_factory("idem-123"))
    second = await orchestrator.create(command_factory("idem-123"))

    assert first.quote.id == second.quote.id
    assert first.quote.created_at == second.quote.created_at


@pytest.mark.asyncio
async def test_replay_with_rescaled_amount(orchestrator, command_factory):
    first = await orchestrator.create(command_factory("idem-1", amount="30"))
    second = await orchestrator.create(command_factory("idem-1", amount="30.00"))

    assert second.is_replay is True
    assert second.body == first.body


@pytest.mark.asyncio
async def test_replay_returns_stored_record_verbatim(orchestrator, storage, record_factory, command_factory):
    command = command_factory("idem-9")
    stored_body = '{"id": "legacy", "note": "stored as-is"}'
    await storage.insert(
        record_factory(key="idem-9", fingerprint=fingerprint_request(command.request), body=stored_body)
    )

    result = await orchestrator.create(command)

    assert result.is_replay is True
    assert result.body == stored_body


@pytest.mark.asyncio
async def test_distinct_keys_create_distinct_quotes(orchestrator, storage, command_factory):
    a = await orchestrator.create(command_factory("idem-a"))
    b = await orchestrator.create(command_factory("idem-b"))

    assert a.quote.id != b.quote.id
    assert await storage.count_quotes() == 2


@pytest.mark.asyncio
async def test_keys_are_case_sensitive(orchestrator, storage, command_factory):
    await orchestrator.create(command_factory("Idem-1"))
    result = await orchestrator.create(command_factory("idem-1"))

    assert result.is_replay is False
    assert await storage.count_quotes() == 2


# ============================================================================
# Conflict
# ============================================================================


@pytest.mark.asyncio
async def test_different_payload_conflicts(orchestrator, storage, command_factory):
    await orchestrator.create(command_factory("idem-456", amount=40))

    result = await orchestrator.create(command_factory("idem-456", amount=41))

    assert result.status_code == 409
    assert result.error is QuoteErrorKind.IDEMPOTENCY_KEY_REUSE_CONFLICT
    assert result.is_replay is False
    assert result.quote is None
    assert json.loads(result.body)["code"] == "IDEMPOTENCY_KEY_REUSE_CONFLICT"
    assert await storage.count_quotes() == 1
    assert await storage.count_records() == 1


@pytest.mark.asyncio
async def test_conflict_leaves_record_unchanged(orchestrator, storage, command_factory):
    original = command_factory("idem-456", amount=40)
    await orchestrator.create(original)
    before = await storage.find("idem-456")

    await orchestrator.create(command_factory("idem-456", amount=41))

    after = await storage.find("idem-456")
    assert after == before
    assert after.fingerprint == fingerprint_request(original.request)


@pytest.mark.asyncio
async def test_original_payload_still_replays_after_conflict(orchestrator, command_factory):
    first = await orchestrator.create(command_factory("idem-456", amount=40))
    await orchestrator.create(command_factory("idem-456", amount=41))

    again = await orchestrator.create(command_factory("idem-456", amount=40))

    assert again.is_replay is True
    assert again.body == first.body


@pytest.mark.asyncio
async def test_currency_case_change_conflicts(orchestrator, command_factory):
    await orchestrator.create(command_factory("idem-1", currency="clp"))

    result = await orchestrator.create(command_factory("idem-1", currency="CLP"))

    assert result.error is QuoteErrorKind.IDEMPOTENCY_KEY_REUSE_CONFLICT


def test_conflict_result_body():
    result = CreateQuoteResult.conflict()

    assert result.status_code == 409
    assert json.loads(result.body) == {
        "code": "IDEMPOTENCY_KEY_REUSE_CONFLICT",
        "message": "Idempotency-Key was already used with a different request payload.",
    }


# ============================================================================
# Concurrency
# ============================================================================


@pytest.mark.asyncio
async def test_concurrent_same_key_creates_one_quote(metrics, config, command_factory):
    # Latency lets every task pass the lookup before any commit lands
    storage = MemoryStorageAdapter(latency_seconds=0.05)
    orchestrator = QuoteOrchestrator(storage, metrics, config)

    results = await asyncio.gather(
        *(orchestrator.create(command_factory("idem-race")) for _ in range(10))
    )

    assert all(r.status_code == 201 for r in results)
    assert len({r.quote.id for r in results}) == 1
    assert len({r.body for r in results}) == 1
    assert sum(1 for r in results if not r.is_replay) == 1
    assert await storage.count_quotes() == 1
    assert await storage.count_records() == 1
    assert metrics.created == 1
    assert metrics.replayed == 9


@pytest.mark.asyncio
async def test_concurrent_different_payloads_one_wins(metrics, config, command_factory):
    storage = MemoryStorageAdapter(latency_seconds=0.05)
    orchestrator = QuoteOrchestrator(storage, metrics, config)

    results = await asyncio.gather(
        orchestrator.create(command_factory("idem-race", amount=40)),
        orchestrator.create(command_factory("idem-race", amount=41)),
    )

    statuses = sorted(r.status_code for r in results)
    assert statuses == [201, 409]
    assert await storage.count_quotes() == 1


@pytest.mark.asyncio
async def test_concurrent_distinct_keys_all_create(orchestrator, storage, command_factory):
    results = await asyncio.gather(
        *(orchestrator.create(command_factory(f"idem-{i}")) for i in range(20))
    )

    assert all(not r.is_replay for r in results)
    assert await storage.count_quotes() == 20


class _RecordlessDuplicateStorage(MemoryStorageAdapter):
    """Rejects every commit as duplicate without ever storing a record."""

    async def commit_created(self, quote, record):
        raise DuplicateKeyError(record.key)


@pytest.mark.asyncio
async def test_duplicate_without_record_is_a_store_fault(metrics, config, command_factory):
    orchestrator = QuoteOrchestrator(_RecordlessDuplicateStorage(), metrics, config)

    with pytest.raises(StorageUnavailableError, match="no record"):
        await orchestrator.create(command_factory("idem-1"))


# ============================================================================
# Store failures
# ============================================================================


@pytest.mark.asyncio
async def test_store_outage_raises(orchestrator, storage, command_factory):
    storage.fail_with = ConnectionError("connection refused")

    with pytest.raises(StorageUnavailableError) as exc_info:
        await orchestrator.create(command_factory("idem-1"))

    assert isinstance(exc_info.value.cause, ConnectionError)


@pytest.mark.asyncio
async def test_store_timeout_raises(metrics, config, command_factory):
    orchestrator = QuoteOrchestrator(MemoryStorageAdapter(latency_seconds=0.5), metrics, config)

    with pytest.raises(StorageUnavailableError, match="timeout"):
        await orchestrator.create(command_factory("idem-1"), timeout=0.05)


@pytest.mark.asyncio
async def test_config_timeout_applies_by_default(metrics, command_factory):
    config = QuotesConfig(store_timeout_seconds=0.05)
    orchestrator = QuoteOrchestrator(MemoryStorageAdapter(latency_seconds=0.5), metrics, config)

    with pytest.raises(StorageUnavailableError):
        await orchestrator.create(command_factory("idem-1"))


@pytest.mark.asyncio
async def test_outage_writes_nothing(orchestrator, storage, command_factory):
    storage.fail_with = ConnectionError("down")
    with pytest.raises(StorageUnavailableError):
        await orchestrator.create(command_factory("idem-1"))

    storage.fail_with = None
    assert await storage.count_quotes() == 0
    assert await storage.count_records() == 0


# ============================================================================
# Metrics
# ============================================================================


@pytest.mark.asyncio
async def test_metrics_follow_decisions(orchestrator, metrics, command_factory):
    await orchestrator.create(command_factory("idem-1", amount=40))
    await orchestrator.create(command_factory("idem-1", amount=40))
    await orchestrator.create(command_factory("idem-1", amount=41))

    assert metrics.created == 1
    assert metrics.replayed == 1
    assert metrics.conflicts == 1


@pytest.mark.asyncio
async def test_default_metrics_sink_is_silent(storage, command_factory):
    orchestrator = QuoteOrchestrator(storage)

    result = await orchestrator.create(command_factory("idem-1"))

    assert result.status_code == 201
