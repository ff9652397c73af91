"""SQLAlchemy storage adapter.

Quotes and idempotency records are kept in two tables. The
``idempotency_records.key`` column carries a unique index, which is the sole
arbiter when concurrent first-time requests race for the same key: both
writes of a new quote run in one transaction, and the loser's transaction
fails on the index and rolls back entirely.

The engine is synchronous; calls are moved off the event loop with
``asyncio.to_thread``.

Timeouts:
    A caller that stops waiting (``asyncio.wait_for`` expiring) does not stop
    the worker thread. A ``commit_created`` whose caller already gave up can
    still commit. The unit of work stays atomic and a retry with the same key
    replays it, but the abandoned caller never reports the creation. Pass a
    server-side statement timeout through the engine (for example
    ``connect_args={"options": "-c statement_timeout=5000"}`` on PostgreSQL)
    to have the database abort such transactions instead.

Examples:
    Creating an adapter on SQLite::

        from idempotent_quotes.storage.sql import SqlStorageAdapter

        adapter = SqlStorageAdapter("sqlite:///./quotes.db")
        adapter.create_schema()
        record = await adapter.find("idem-123")
"""

import asyncio
from collections.abc import Callable
from typing import TypeVar
from uuid import UUID

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    create_engine,
    func,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from idempotent_quotes.exceptions import DuplicateKeyError, StorageUnavailableError
from idempotent_quotes.models import IdempotencyRecord, Quote
from idempotent_quotes.storage.base import StorageAdapter

T = TypeVar("T")

metadata = MetaData()

quotes_table = Table(
    "quotes",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("document_id", String(50), nullable=False),
    Column("amount", Numeric(18, 2), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("status", String(20), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_quotes_document_id_created_at", "document_id", "created_at"),
)

idempotency_records_table = Table(
    "idempotency_records",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("key", String(255), nullable=False),
    Column("request_hash", String(64), nullable=False),
    Column("status_code", Integer, nullable=False),
    Column("response_body", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ux_idempotency_records_key", "key", unique=True),
)


class SqlStorageAdapter(StorageAdapter):
    """Storage adapter for any SQLAlchemy-supported database.

    Attributes:
        engine: The SQLAlchemy engine.
    """

    def __init__(self, database_url: str | None = None, engine: Engine | None = None) -> None:
        """Initialize the adapter from a URL or an existing engine.

        Args:
            database_url: SQLAlchemy database URL.
            engine: Pre-built engine; takes precedence over database_url.
        """
        if engine is None:
            if database_url is None:
                raise ValueError("Either database_url or engine is required")
            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
            )
        self.engine = engine

    def create_schema(self) -> None:
        """Create the tables and indexes if they do not exist."""
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageUnavailableError(message=f"Failed to create schema: {e}", cause=e) from e

    def close(self) -> None:
        self.engine.dispose()

    async def find(self, key: str) -> IdempotencyRecord | None:
        def _find(conn: Connection) -> IdempotencyRecord | None:
            row = conn.execute(
                select(idempotency_records_table).where(idempotency_records_table.c.key == key)
            ).first()
            return None if row is None else _row_to_record(row)

        return await self._run(_find)

    async def insert(self, record: IdempotencyRecord) -> None:
        await self._run(lambda conn: _insert_record(conn, record), transactional=True)

    async def commit_created(self, quote: Quote, record: IdempotencyRecord) -> None:
        """Insert the idempotency record and the quote in one transaction.

        Raises:
            DuplicateKeyError: If the key already exists; the transaction is
                rolled back and the quote is not stored.
        """

        def _commit(conn: Connection) -> None:
            _insert_record(conn, record)
            conn.execute(
                quotes_table.insert().values(
                    id=str(quote.id),
                    document_id=quote.document_id,
                    amount=quote.amount,
                    currency=quote.currency,
                    status=quote.status,
                    created_at=quote.created_at,
                )
            )

        await self._run(_commit, transactional=True)

    async def get_quote(self, quote_id: UUID) -> Quote | None:
        def _get(conn: Connection) -> Quote | None:
            row = conn.execute(
                select(quotes_table).where(quotes_table.c.id == str(quote_id))
            ).first()
            if row is None:
                return None
            data = row._mapping
            return Quote(
                id=UUID(data["id"]),
                document_id=data["document_id"],
                amount=data["amount"],
                currency=data["currency"],
                status=data["status"],
                created_at=data["created_at"],
            )

        return await self._run(_get)

    async def count_quotes(self) -> int:
        return await self._run(
            lambda conn: conn.execute(select(func.count()).select_from(quotes_table)).scalar_one()
        )

    async def count_records(self) -> int:
        return await self._run(
            lambda conn: conn.execute(
                select(func.count()).select_from(idempotency_records_table)
            ).scalar_one()
        )

    async def ping(self) -> None:
        await self._run(lambda conn: conn.execute(text("SELECT 1")))

    async def _run(self, operation: Callable[[Connection], T], transactional: bool = False) -> T:
        return await asyncio.to_thread(self._run_sync, operation, transactional)

    def _run_sync(self, operation: Callable[[Connection], T], transactional: bool) -> T:
        try:
            if transactional:
                with self.engine.begin() as conn:
                    return operation(conn)
            with self.engine.connect() as conn:
                return operation(conn)
        except DuplicateKeyError:
            raise
        except SQLAlchemyError as e:
            raise StorageUnavailableError(message=f"Database operation failed: {e}", cause=e) from e


def _insert_record(conn: Connection, record: IdempotencyRecord) -> None:
    try:
        conn.execute(
            idempotency_records_table.insert().values(
                key=record.key,
                request_hash=record.fingerprint,
                status_code=record.status_code,
                response_body=record.response_body,
                created_at=record.created_at,
            )
        )
    except IntegrityError as e:
        raise DuplicateKeyError(record.key) from e


def _row_to_record(row: Row) -> IdempotencyRecord:
    data = row._mapping
    return IdempotencyRecord(
        key=data["key"],
        fingerprint=data["request_hash"],
        status_code=data["status_code"],
        response_body=data["response_body"],
        created_at=data["created_at"],
    )
