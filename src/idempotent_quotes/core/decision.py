"""Idempotency decision engine.

Given the stored record for a key (if any) and the fingerprint of the
incoming request, the engine decides one of three outcomes:

    no record                          -> Proceed
    record, fingerprints match         -> Replay(stored status, stored body)
    record, fingerprints differ        -> Conflict

Fingerprints are compared ignoring hex case. The engine does no business
validation; it is a pure function of the lookup result and the comparison.

Examples:
    Deciding for an incoming request::

        from idempotent_quotes.core.decision import Replay, check

        decision = await check(storage, key="idem-123", fingerprint=fp)
        if isinstance(decision, Replay):
            return decision.status_code, decision.body
"""

from idempotent_quotes.models import IdempotencyRecord
from idempotent_quotes.storage.base import StorageAdapter


class Proceed:
    """No record exists for the key; the operation may execute."""

    def __repr__(self) -> str:
        return "Proceed()"


class Replay:
    """A matching record exists; return its stored outcome unchanged.

    Attributes:
        status_code: Stored HTTP status code
        body: Stored response body, exactly as persisted
    """

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body

    def __repr__(self) -> str:
        return f"Replay(status_code={self.status_code})"


class Conflict:
    """A record exists for the key but was created from a different payload.

    Attributes:
        stored_fingerprint: Fingerprint of the original request
        request_fingerprint: Fingerprint of the incoming request
    """

    def __init__(self, stored_fingerprint: str, request_fingerprint: str) -> None:
        self.stored_fingerprint = stored_fingerprint
        self.request_fingerprint = request_fingerprint

    def __repr__(self) -> str:
        return "Conflict()"


Decision = Proceed | Replay | Conflict


def decide(record: IdempotencyRecord | None, fingerprint: str) -> Decision:
    """Decide how to handle a request from the stored record for its key.

    Args:
        record: The stored record, or None if the key is unknown
        fingerprint: Fingerprint of the incoming request

    Returns:
        Proceed, Replay or Conflict
    """
    if record is None:
        return Proceed()

    if record.fingerprint.lower() == fingerprint.lower():
        return Replay(status_code=record.status_code, body=record.response_body)

    return Conflict(
        stored_fingerprint=record.fingerprint,
        request_fingerprint=fingerprint,
    )


async def check(storage: StorageAdapter, key: str, fingerprint: str) -> Decision:
    """Look up the key in the store and decide.

    Raises:
        StorageUnavailableError: If the store lookup fails
    """
    record = await storage.find(key)
    return decide(record, fingerprint)
