"""Request fingerprinting for idempotency.

The fingerprint is a SHA-256 digest of a canonical JSON encoding of the
request payload, so that logically identical payloads hash identically
regardless of field order or formatting:

1. Mapping keys are sorted; separators carry no whitespace.
2. Strings are emitted as UTF-8 (``ensure_ascii=False``).
3. Decimals are rendered as plain fixed-point text without trailing zeros
   (``30``, ``30.00`` and ``3E+1`` encode as ``"30"``).
4. The digest is rendered as 64 lowercase hex characters.

Request values are fingerprinted as received. Trimming and upper-casing of
the currency happen later, when the quote is built, so ``"clp"`` and
``"CLP"`` under the same key conflict.
"""

import hashlib
import json
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from idempotent_quotes.models import CreateQuoteRequest


def compute_fingerprint(payload: Mapping[str, Any]) -> str:
    """Compute a deterministic fingerprint for a request payload.

    Args:
        payload: The request content as a mapping of field name to value.
            Values may be strings, numbers, Decimals, booleans, None, or
            nested mappings and lists of these.

    Returns:
        Hexadecimal SHA-256 hash string (64 characters)

    Examples:
        >>> a = compute_fingerprint({"amount": Decimal("30"), "currency": "clp"})
        >>> b = compute_fingerprint({"currency": "clp", "amount": Decimal("30.00")})
        >>> a == b
        True
    """
    canonical = canonical_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def fingerprint_request(request: CreateQuoteRequest) -> str:
    """Fingerprint a create-quote request using its wire field names."""
    return compute_fingerprint(request.wire_fields())


def canonical_json(payload: Mapping[str, Any]) -> str:
    """Render a payload as canonical JSON text.

    Args:
        payload: Mapping to encode

    Returns:
        Compact JSON with sorted keys
    """
    return json.dumps(
        _canonicalize_value(payload),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def _canonicalize_value(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _canonicalize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonicalize_value(item) for item in value]
    if isinstance(value, Decimal):
        return _canonicalize_decimal(value)
    return value


def _canonicalize_decimal(value: Decimal) -> str:
    """Render a Decimal as fixed-point text with trailing zeros removed.

    Args:
        value: A finite Decimal

    Returns:
        Plain decimal string, e.g. ``"30"`` or ``"10.5"``
    """
    if not value.is_finite():
        raise ValueError(f"Cannot fingerprint non-finite decimal: {value}")

    normalized = value.normalize()
    if normalized == 0:
        # Decimal("-0") and Decimal("0E-2") collapse to a single encoding
        return "0"
    return format(normalized, "f")
