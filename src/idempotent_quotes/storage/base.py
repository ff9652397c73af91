"""Storage adapter protocol for quotes and idempotency records.

This module defines the interface that every storage backend implements.
A backend persists two independent collections, quotes and idempotency
records, and must be able to write one of each in a single atomic unit of
work so that a crash between the two writes can never leave a quote without
its idempotency record.

Examples:
    Implementing a custom storage adapter::

        from idempotent_quotes.exceptions import DuplicateKeyError
        from idempotent_quotes.models import IdempotencyRecord, Quote

        class MyStorageAdapter:
            async def find(self, key: str) -> IdempotencyRecord | None:
                data = await self.backend.get(key)
                if data is None:
                    return None
                return IdempotencyRecord.model_validate_json(data)

            async def commit_created(self, quote: Quote, record: IdempotencyRecord) -> None:
                async with self.backend.transaction() as tx:
                    if not await tx.set_if_absent(record.key, record.model_dump_json()):
                        raise DuplicateKeyError(record.key)
                    await tx.put(str(quote.id), quote.model_dump_json())

Atomicity Requirements:
    All StorageAdapter implementations MUST guarantee:

    1. **Uniqueness**: at most one idempotency record per key, ever. The
       uniqueness check and the write happen atomically (a unique index or
       an insert-if-absent primitive), never as an unguarded read-then-write.

    2. **All-or-nothing**: insert() and commit_created() either fully succeed
       or leave no trace. A half-written record is never observable.

    3. **Immutability**: records are never updated or deleted.

    4. **Error translation**: backend failures surface as
       StorageUnavailableError, key collisions as DuplicateKeyError. Backend
       specific exceptions must not escape.
"""

from typing import Protocol, runtime_checkable
from uuid import UUID

from idempotent_quotes.models import IdempotencyRecord, Quote


@runtime_checkable
class StorageAdapter(Protocol):
    """Protocol defining the interface for quote and idempotency storage.

    All methods are async and must be safe to call concurrently from
    multiple asyncio tasks.

    Error Handling:
        Methods raise StorageUnavailableError when the backend cannot be
        reached or fails, and DuplicateKeyError when a write collides with an
        existing idempotency key.
    """

    async def find(self, key: str) -> IdempotencyRecord | None:
        """Retrieve an idempotency record by key.

        Args:
            key: The idempotency key to look up (case-sensitive).

        Returns:
            The idempotency record if found, None otherwise.
        """
        ...

    async def insert(self, record: IdempotencyRecord) -> None:
        """Insert a new idempotency record.

        Args:
            record: The record to insert.

        Raises:
            DuplicateKeyError: If a record already exists for record.key.
        """
        ...

    async def commit_created(self, quote: Quote, record: IdempotencyRecord) -> None:
        """Persist a newly created quote and its idempotency record atomically.

        Exactly one of several concurrent calls for the same key succeeds.
        The others raise DuplicateKeyError and persist nothing, not even the
        quote.

        Args:
            quote: The new quote.
            record: The idempotency record describing the quote's response.

        Raises:
            DuplicateKeyError: If a record already exists for record.key.
        """
        ...

    async def get_quote(self, quote_id: UUID) -> Quote | None:
        """Retrieve a quote by id."""
        ...

    async def count_quotes(self) -> int:
        """Return the number of stored quotes."""
        ...

    async def count_records(self) -> int:
        """Return the number of stored idempotency records."""
        ...

    async def ping(self) -> None:
        """Check that the backend is reachable.

        Raises:
            StorageUnavailableError: If the backend cannot be reached.
        """
        ...
