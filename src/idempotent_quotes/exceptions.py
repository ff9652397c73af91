"""Custom exceptions and error kinds for the quotes service.

This module defines the exception hierarchy used to signal infrastructure
and internal conditions, plus the ``QuoteErrorKind`` enumeration describing
every user-visible failure with its stable machine-readable code.

Business conflicts (an idempotency key reused with a different payload) are
expected and frequent, so they are returned as typed results rather than
raised. Only infrastructure failures and internal race signals are
exceptions.

Examples:
    Translating a store outage at the transport layer::

        from idempotent_quotes.exceptions import StorageUnavailableError

        try:
            result = await orchestrator.create(command)
        except StorageUnavailableError as e:
            logger.error("dependency.unavailable", error=e.message)
            return JSONResponse(status_code=503, content={"code": "DB_UNAVAILABLE"})

    Absorbing a lost insert race::

        from idempotent_quotes.exceptions import DuplicateKeyError

        try:
            await storage.commit_created(quote, record)
        except DuplicateKeyError:
            decision = await check(storage, key, fingerprint)
"""

from enum import Enum


class QuotesError(Exception):
    """Base exception for all quotes-service errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class DuplicateKeyError(QuotesError):
    """An idempotency record already exists for the key.

    Raised by ``StorageAdapter.insert`` and ``StorageAdapter.commit_created``
    when the store's uniqueness constraint rejects the write. The store's
    constraint is the single arbiter of "first writer wins": when two
    first-time requests race, the loser receives this error and nothing of its
    unit of work is persisted.

    This is an internal signal. The orchestrator absorbs it by re-reading the
    store, and it never reaches the caller.

    Attributes:
        message: Human-readable error description.
        key: The idempotency key that already exists.
    """

    def __init__(self, key: str, message: str | None = None) -> None:
        super().__init__(message or f"Idempotency key already exists: {key!r}")
        self.key = key


class StorageUnavailableError(QuotesError):
    """The storage backend could not complete the operation.

    Raised for network failures, unreachable databases, driver errors and
    store calls that exceed their timeout. It propagates unmodified through
    the orchestrator so the transport layer can answer with a retryable 503,
    distinct from any business error.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception, if any.

    Examples:
        Wrapping a driver error::

            try:
                connection.execute(stmt)
            except OperationalError as e:
                raise StorageUnavailableError(
                    message=f"Database unreachable: {e}",
                    cause=e,
                ) from e
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the storage error with details.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that caused the storage error.
        """
        super().__init__(message)
        self.cause = cause


class AuthenticationError(QuotesError):
    """The bearer token is missing or was rejected by the verifier."""


class QuoteErrorKind(str, Enum):
    """User-visible failure kinds with their stable codes.

    The enum value is the machine-readable code sent to clients. Each kind
    also knows the HTTP status it maps to and a default human message.
    """

    IDEMPOTENCY_KEY_REQUIRED = "IDEMPOTENCY_KEY_REQUIRED"
    IDEMPOTENCY_KEY_INVALID = "IDEMPOTENCY_KEY_INVALID"
    IDEMPOTENCY_KEY_REUSE_CONFLICT = "IDEMPOTENCY_KEY_REUSE_CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    DB_UNAVAILABLE = "DB_UNAVAILABLE"

    @property
    def code(self) -> str:
        return self.value

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @property
    def default_message(self) -> str:
        return _MESSAGES[self]


_STATUS_CODES = {
    QuoteErrorKind.IDEMPOTENCY_KEY_REQUIRED: 400,
    QuoteErrorKind.IDEMPOTENCY_KEY_INVALID: 400,
    QuoteErrorKind.IDEMPOTENCY_KEY_REUSE_CONFLICT: 409,
    QuoteErrorKind.VALIDATION_ERROR: 400,
    QuoteErrorKind.UNAUTHORIZED: 401,
    QuoteErrorKind.DB_UNAVAILABLE: 503,
}

_MESSAGES = {
    QuoteErrorKind.IDEMPOTENCY_KEY_REQUIRED: "Idempotency-Key header is required.",
    QuoteErrorKind.IDEMPOTENCY_KEY_INVALID: "Idempotency-Key header is too long.",
    QuoteErrorKind.IDEMPOTENCY_KEY_REUSE_CONFLICT: (
        "Idempotency-Key was already used with a different request payload."
    ),
    QuoteErrorKind.VALIDATION_ERROR: "Request payload is invalid.",
    QuoteErrorKind.UNAUTHORIZED: "A valid bearer token is required.",
    QuoteErrorKind.DB_UNAVAILABLE: "Database dependency is unavailable.",
}
