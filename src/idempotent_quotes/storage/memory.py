"""In-memory storage adapter with asyncio concurrency control.

This module provides an in-memory implementation of the StorageAdapter
interface. Idempotency records live in an append-only arena (a list) with a
key index; each key maps to exactly one slot and slots are never rewritten.

The MemoryStorageAdapter is suitable for:
    - Single-process deployments
    - Development and testing

For durability across restarts use SqlStorageAdapter instead.

Concurrency:
    - A single asyncio.Lock guards the arena, the key index and the quotes
    - Insert-if-absent and the two writes of commit_created() run inside
      one critical section with no await points, so cancellation can never
      split them

Testing hooks:
    - ``latency_seconds`` delays every operation, widening race windows
    - ``fail_with`` makes every operation raise StorageUnavailableError

Examples:
    Basic usage::

        from idempotent_quotes.storage.memory import MemoryStorageAdapter

        adapter = MemoryStorageAdapter()
        await adapter.commit_created(quote, record)
        assert await adapter.find(record.key) == record

    Concurrent commits for one key::

        results = await asyncio.gather(
            adapter.commit_created(quote_a, record_a),
            adapter.commit_created(quote_b, record_b),
            return_exceptions=True,
        )
        # Exactly one succeeds, the other raised DuplicateKeyError
"""

import asyncio
from uuid import UUID

from idempotent_quotes.exceptions import DuplicateKeyError, StorageUnavailableError
from idempotent_quotes.models import IdempotencyRecord, Quote
from idempotent_quotes.storage.base import StorageAdapter


class MemoryStorageAdapter(StorageAdapter):
    """In-memory storage adapter backed by an append-only record arena.

    Attributes:
        latency_seconds: Artificial delay applied before every operation.
        fail_with: When set, every operation raises StorageUnavailableError
            wrapping this exception.
        _records: Append-only list of idempotency records.
        _index: Dictionary mapping keys to their slot in _records.
        _quotes: Dictionary mapping quote ids to quotes.
        _lock: Lock protecting all of the above.
    """

    def __init__(self, latency_seconds: float = 0.0) -> None:
        """Initialize a new in-memory storage adapter.

        Args:
            latency_seconds: Artificial delay applied before every operation.
        """
        self.latency_seconds = latency_seconds
        self.fail_with: Exception | None = None
        self._records: list[IdempotencyRecord] = []
        self._index: dict[str, int] = {}
        self._quotes: dict[UUID, Quote] = {}
        self._lock = asyncio.Lock()

    async def find(self, key: str) -> IdempotencyRecord | None:
        await self._enter()
        slot = self._index.get(key)
        if slot is None:
            return None
        return self._records[slot]

    async def insert(self, record: IdempotencyRecord) -> None:
        """Insert a record if no record exists for its key.

        Raises:
            DuplicateKeyError: If the key is already present.
        """
        await self._enter()
        async with self._lock:
            self._append_record(record)

    async def commit_created(self, quote: Quote, record: IdempotencyRecord) -> None:
        """Store the quote and its idempotency record as one unit of work.

        The key check happens first; on collision nothing is written.

        Raises:
            DuplicateKeyError: If the key is already present.
        """
        await self._enter()
        async with self._lock:
            self._append_record(record)
            self._quotes[quote.id] = quote

    async def get_quote(self, quote_id: UUID) -> Quote | None:
        await self._enter()
        return self._quotes.get(quote_id)

    async def count_quotes(self) -> int:
        await self._enter()
        return len(self._quotes)

    async def count_records(self) -> int:
        await self._enter()
        return len(self._records)

    async def ping(self) -> None:
        await self._enter()

    def _append_record(self, record: IdempotencyRecord) -> None:
        # Caller must hold self._lock
        if record.key in self._index:
            raise DuplicateKeyError(record.key)
        self._records.append(record)
        self._index[record.key] = len(self._records) - 1

    async def _enter(self) -> None:
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)
        if self.fail_with is not None:
            raise StorageUnavailableError(
                message=f"Memory store unavailable: {self.fail_with}",
                cause=self.fail_with,
            )
