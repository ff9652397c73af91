"""Create-quote use case guarded by an idempotency key.

The orchestrator runs the whole idempotency flow for one request:

1. Fingerprint the request exactly as received
2. Ask the decision engine about the key
3. Conflict: return IDEMPOTENCY_KEY_REUSE_CONFLICT (409), write nothing
4. Replay: return the stored status and body verbatim
5. Proceed: build the quote, serialize its response, and commit the quote
   and the idempotency record in one unit of work
6. If that commit loses a race (DuplicateKeyError), decide again against the
   winner's record and return its outcome

For a single key the lifecycle is ``Absent -> Created``; a created key never
changes again.

Every store call is bounded by a timeout. A timeout, like any other store
failure, is raised as StorageUnavailableError for the transport layer to
translate; business conflicts are returned as results, never raised.
A commit that fails this way has an unknown outcome (the store may still
apply it) and is logged as ``quote.commit_unconfirmed``; retrying with the
same key either creates the quote or replays the one that landed.

Examples:
    Creating a quote::

        from idempotent_quotes.core.orchestrator import QuoteOrchestrator

        orchestrator = QuoteOrchestrator(storage, metrics, config)
        result = await orchestrator.create(command)
        if result.error is None:
            print(result.status_code, result.is_replay, result.quote.id)
"""

import asyncio
import json
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar
from uuid import UUID

from idempotent_quotes.config import QuotesConfig
from idempotent_quotes.core.decision import Conflict, Decision, Proceed, Replay, check
from idempotent_quotes.exceptions import (
    DuplicateKeyError,
    QuoteErrorKind,
    StorageUnavailableError,
)
from idempotent_quotes.fingerprint import fingerprint_request
from idempotent_quotes.models import (
    QUOTE_STATUS_ISSUED,
    CreateQuoteCommand,
    CreateQuoteRequest,
    IdempotencyRecord,
    Quote,
    QuoteResponse,
)
from idempotent_quotes.observability.logging import get_logger
from idempotent_quotes.observability.metrics import MetricsSink, NullMetricsSink
from idempotent_quotes.storage.base import StorageAdapter

T = TypeVar("T")

CREATED_STATUS = 201

logger = get_logger(__name__)


class CreateQuoteResult:
    """Outcome of a create-quote call.

    Attributes:
        status_code: HTTP status to send (201 for created or replayed quotes)
        body: Serialized JSON body; for replays, the stored text unchanged
        is_replay: True if the body was replayed from the idempotency store
        error: The user-visible error kind, or None on success
    """

    def __init__(
        self,
        status_code: int,
        body: str,
        is_replay: bool,
        error: QuoteErrorKind | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.is_replay = is_replay
        self.error = error

    @property
    def quote(self) -> QuoteResponse | None:
        """The quote parsed from the body, or None for error results."""
        if self.error is not None:
            return None
        return QuoteResponse.model_validate_json(self.body)

    @classmethod
    def conflict(cls) -> "CreateQuoteResult":
        kind = QuoteErrorKind.IDEMPOTENCY_KEY_REUSE_CONFLICT
        body = json.dumps({"code": kind.code, "message": kind.default_message})
        return cls(status_code=kind.status_code, body=body, is_replay=False, error=kind)


class QuoteOrchestrator:
    """Runs the create-quote use case against a storage adapter.

    The orchestrator holds no mutable state of its own; it is safe to share
    one instance across concurrent requests.

    Attributes:
        storage: Storage adapter for quotes and idempotency records
        metrics: Sink notified after every terminal decision
        config: Service configuration
    """

    def __init__(
        self,
        storage: StorageAdapter,
        metrics: MetricsSink | None = None,
        config: QuotesConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], UUID] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            storage: Storage adapter
            metrics: Metrics sink (discards events if not provided)
            config: Configuration (uses defaults if not provided)
            clock: Returns the creation timestamp (UTC now by default)
            id_factory: Returns new quote ids (uuid4 by default)
        """
        self.storage = storage
        self.metrics = metrics or NullMetricsSink()
        self.config = config or QuotesConfig()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._id_factory = id_factory or uuid.uuid4

    async def create(
        self,
        command: CreateQuoteCommand,
        timeout: float | None = None,
    ) -> CreateQuoteResult:
        """Create a quote at most once per idempotency key.

        Args:
            command: Idempotency key and request body
            timeout: Bound in seconds for each store call
                (config.store_timeout_seconds if omitted)

        Returns:
            CreateQuoteResult for a new, replayed or conflicting request

        Raises:
            StorageUnavailableError: If the store fails or times out
        """
        limit = timeout if timeout is not None else self.config.store_timeout_seconds
        key = command.idempotency_key
        fingerprint = fingerprint_request(command.request)
        log = logger.bind(key=key)

        decision = await self._bounded(check(self.storage, key, fingerprint), limit)

        if isinstance(decision, Proceed):
            quote = self._build_quote(command.request)
            body = quote.to_response().to_json()
            record = IdempotencyRecord(
                key=key,
                fingerprint=fingerprint,
                status_code=CREATED_STATUS,
                response_body=body,
                created_at=quote.created_at,
            )

            try:
                await self._bounded(self.storage.commit_created(quote, record), limit)
            except DuplicateKeyError:
                # Another request committed this key first; answer with its outcome
                log.info("quote.race_lost")
                decision = await self._bounded(check(self.storage, key, fingerprint), limit)
                if isinstance(decision, Proceed):
                    raise StorageUnavailableError(
                        f"Store rejected key {key!r} as duplicate but has no record for it"
                    ) from None
            except StorageUnavailableError as e:
                # The store may still apply the commit; a retry with this key replays it
                log.warning("quote.commit_unconfirmed", quote_id=str(quote.id), error=e.message)
                raise
            else:
                self.metrics.quote_created()
                log.info("quote.created", quote_id=str(quote.id))
                return CreateQuoteResult(
                    status_code=CREATED_STATUS,
                    body=body,
                    is_replay=False,
                )

        return self._settle(decision, log)

    def _settle(self, decision: Decision, log: Any) -> CreateQuoteResult:
        if isinstance(decision, Conflict):
            self.metrics.idempotency_conflict()
            log.warning(
                "quote.conflict",
                stored_fingerprint=decision.stored_fingerprint,
                request_fingerprint=decision.request_fingerprint,
            )
            return CreateQuoteResult.conflict()

        if isinstance(decision, Replay):
            self.metrics.idempotency_replayed()
            log.info("quote.replayed", status_code=decision.status_code)
            return CreateQuoteResult(
                status_code=decision.status_code,
                body=decision.body,
                is_replay=True,
            )

        raise RuntimeError(f"Unexpected decision: {decision!r}")

    def _build_quote(self, request: CreateQuoteRequest) -> Quote:
        return Quote(
            id=self._id_factory(),
            document_id=request.document_id.strip(),
            amount=request.amount,
            currency=request.currency.strip().upper(),
            status=QUOTE_STATUS_ISSUED,
            created_at=self._clock(),
        )

    async def _bounded(self, operation: Awaitable[T], timeout: float) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise StorageUnavailableError(
                message=f"Store call exceeded {timeout}s timeout",
                cause=e,
            ) from e
