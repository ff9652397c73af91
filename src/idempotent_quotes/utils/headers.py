"""Header helpers for the quotes service.

This module provides functions for:
- Case-insensitive header lookup
- Extracting and normalizing the Idempotency-Key header
- Parsing bearer tokens from the Authorization header
- Building the Idempotency-Status response header
"""

from collections.abc import Mapping

IDEMPOTENCY_KEY_HEADER = "Idempotency-Key"
IDEMPOTENCY_STATUS_HEADER = "Idempotency-Status"
CORRELATION_ID_HEADER = "X-Correlation-Id"
RETRY_AFTER_HEADER = "Retry-After"

STATUS_CREATED = "created"
STATUS_REPLAYED = "replayed"


def get_header_value(
    headers: Mapping[str, str],
    header_name: str,
    default: str | None = None,
) -> str | None:
    """Get header value with case-insensitive lookup.

    Args:
        headers: Headers mapping
        header_name: Name of header to find (case-insensitive)
        default: Default value if header not found

    Returns:
        Header value or default

    Example:
        >>> get_header_value({"Content-Type": "application/json"}, "content-type")
        'application/json'
    """
    header_name_lower = header_name.lower()

    for key, value in headers.items():
        if key.lower() == header_name_lower:
            return value

    return default


def extract_idempotency_key(headers: Mapping[str, str]) -> str | None:
    """Return the trimmed Idempotency-Key, or None when missing or blank.

    The key itself is opaque and case-sensitive; only surrounding
    whitespace is removed.

    Example:
        >>> extract_idempotency_key({"idempotency-key": "  idem-123 "})
        'idem-123'
        >>> extract_idempotency_key({"idempotency-key": "   "}) is None
        True
    """
    value = get_header_value(headers, IDEMPOTENCY_KEY_HEADER)
    if value is None or not value.strip():
        return None
    return value.strip()


def extract_bearer_token(authorization: str | None) -> str | None:
    """Parse ``Bearer <token>`` from an Authorization header value.

    Example:
        >>> extract_bearer_token("Bearer abc")
        'abc'
        >>> extract_bearer_token("Basic abc") is None
        True
    """
    if not authorization:
        return None

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def idempotency_status_headers(is_replay: bool) -> dict[str, str]:
    """Build the Idempotency-Status header for a create-quote response."""
    return {IDEMPOTENCY_STATUS_HEADER: STATUS_REPLAYED if is_replay else STATUS_CREATED}
