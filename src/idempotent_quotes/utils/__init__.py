"""Utility modules for the quotes service."""

from .headers import (
    CORRELATION_ID_HEADER,
    IDEMPOTENCY_KEY_HEADER,
    IDEMPOTENCY_STATUS_HEADER,
    RETRY_AFTER_HEADER,
    extract_bearer_token,
    extract_idempotency_key,
    get_header_value,
    idempotency_status_headers,
)

__all__ = [
    "CORRELATION_ID_HEADER",
    "IDEMPOTENCY_KEY_HEADER",
    "IDEMPOTENCY_STATUS_HEADER",
    "RETRY_AFTER_HEADER",
    "extract_bearer_token",
    "extract_idempotency_key",
    "get_header_value",
    "idempotency_status_headers",
]
