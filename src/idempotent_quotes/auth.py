"""Bearer-token verification.

Token issuance is out of scope for this service; verification is a
pluggable collaborator. The application only needs a ``TokenVerifier``
that either returns the caller's principal or raises AuthenticationError.

Examples:
    Accepting a fixed set of tokens::

        from idempotent_quotes.auth import StaticTokenVerifier

        verifier = StaticTokenVerifier(["token-a", "token-b"])
        principal = await verifier.verify("token-a")
"""

import hashlib
import hmac
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from idempotent_quotes.exceptions import AuthenticationError


@runtime_checkable
class TokenVerifier(Protocol):
    """Verifies bearer tokens presented to the API."""

    async def verify(self, token: str) -> str:
        """Verify a token and return the principal it identifies.

        Raises:
            AuthenticationError: If the token is not accepted.
        """
        ...


class StaticTokenVerifier:
    """Accepts tokens from a fixed list, compared in constant time.

    The principal returned for a token is a short digest of it, so logs can
    correlate callers without ever containing the token itself.
    """

    def __init__(self, tokens: Iterable[str]) -> None:
        self._tokens = [token.encode("utf-8") for token in tokens if token]

    async def verify(self, token: str) -> str:
        candidate = token.encode("utf-8")
        matched = False
        for accepted in self._tokens:
            # No early exit: every accepted token is compared
            matched |= hmac.compare_digest(candidate, accepted)

        if not matched:
            raise AuthenticationError("Bearer token was rejected")

        return "token:" + hashlib.sha256(candidate).hexdigest()[:12]
