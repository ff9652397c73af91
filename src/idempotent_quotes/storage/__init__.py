"""Storage adapters for quotes and idempotency records.

All adapters implement the StorageAdapter protocol defined in base.py.

Available Adapters:
    - MemoryStorageAdapter: In-memory append-only arena with asyncio locking
    - SqlStorageAdapter: SQLAlchemy tables with a unique index on the key
"""

from idempotent_quotes.config import QuotesConfig
from idempotent_quotes.storage.base import StorageAdapter
from idempotent_quotes.storage.memory import MemoryStorageAdapter
from idempotent_quotes.storage.sql import SqlStorageAdapter


def create_storage(config: QuotesConfig) -> StorageAdapter:
    """Build the storage adapter selected by the configuration.

    The sql adapter's schema is created if missing.
    """
    if config.storage_adapter == "sql":
        adapter = SqlStorageAdapter(config.database_url)
        adapter.create_schema()
        return adapter
    return MemoryStorageAdapter()


__all__ = [
    "StorageAdapter",
    "MemoryStorageAdapter",
    "SqlStorageAdapter",
    "create_storage",
]
