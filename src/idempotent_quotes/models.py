"""Core type definitions and models for the quotes service.

This module provides the data structures used throughout the service: the
wire-level request and response documents, the persisted ``Quote`` and
``IdempotencyRecord`` entities, and the ``CreateQuoteCommand`` handed to the
orchestrator.

Persisted entities are immutable. An idempotency record is written exactly
once, when the quote it describes is created, and is never updated.

Examples:
    Parsing a request body::

        from idempotent_quotes.models import CreateQuoteRequest

        request = CreateQuoteRequest.model_validate_json(
            b'{"documentId": "DOC-3", "amount": 30, "currency": "clp"}'
        )

    Creating an idempotency record::

        from datetime import UTC, datetime
        from idempotent_quotes.models import IdempotencyRecord

        record = IdempotencyRecord(
            key="idem-123",
            fingerprint="a" * 64,
            status_code=201,
            response_body='{"id": "..."}',
            created_at=datetime.now(UTC),
        )
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

QUOTE_STATUS_ISSUED = "ISSUED"

MIN_AMOUNT = Decimal("0.01")
MAX_AMOUNT = Decimal("999999999")


class CreateQuoteRequest(BaseModel):
    """Body of ``POST /api/v1/quotes`` as submitted by the caller.

    Values are kept exactly as received. Normalization (trimming, upper-casing
    the currency) happens when the quote is built, after fingerprinting.

    Attributes:
        document_id: Caller's document reference, 1-50 characters.
        amount: Quoted amount, between 0.01 and 999999999 inclusive, at
            most two decimal places.
        currency: Three-letter currency code in any case.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    document_id: str = Field(
        ...,
        alias="documentId",
        min_length=1,
        max_length=50,
        examples=["DOC-3"],
    )
    amount: Decimal = Field(
        ...,
        ge=MIN_AMOUNT,
        le=MAX_AMOUNT,
        decimal_places=2,
        examples=[30, "10.50"],
    )
    currency: str = Field(
        ...,
        pattern=r"^[A-Za-z]{3}$",
        examples=["clp", "USD"],
    )

    @field_validator("document_id")
    @classmethod
    def validate_document_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("documentId must not be blank")
        return v

    def wire_fields(self) -> dict[str, Any]:
        """Return the request fields keyed by their wire names, unnormalized."""
        return self.model_dump(by_alias=True)


class Quote(BaseModel):
    """A created quote, the business record guarded by the idempotency key.

    The quote's identity is generated by the server and is independent of
    the idempotency key; the quote does not remember which key created it.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    document_id: str = Field(..., max_length=50)
    amount: Decimal
    currency: str = Field(..., min_length=3, max_length=3)
    status: str = QUOTE_STATUS_ISSUED
    created_at: datetime

    def to_response(self) -> "QuoteResponse":
        return QuoteResponse(
            id=self.id,
            document_id=self.document_id,
            amount=self.amount,
            currency=self.currency,
            status=self.status,
            created_at=self.created_at,
        )


class QuoteResponse(BaseModel):
    """Response document for a created (or replayed) quote.

    It is serialized once, with camelCase field names, and that exact JSON
    text is both sent to the caller and stored for later replays.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: UUID
    document_id: str = Field(..., alias="documentId")
    amount: Decimal
    currency: str
    status: str
    created_at: datetime = Field(..., alias="createdAt")

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, amount: Decimal) -> str:
        return format(amount, "f")

    def to_json(self) -> str:
        """Serialize with camelCase names and the amount as a JSON number.

        The amount keeps the scale it was received with: ``10.50`` stays
        ``10.50`` and ``30`` stays ``30``.
        """
        text = self.model_dump_json(by_alias=True)
        amount = format(self.amount, "f")
        # Quotes inside string values are escaped, so this pattern occurs once
        return text.replace(f'"amount":"{amount}"', f'"amount":{amount}', 1)


class IdempotencyRecord(BaseModel):
    """Stored outcome of the first successful request for an idempotency key.

    At most one record exists per key. Records are immutable: created once
    together with the quote they describe, never updated in place, and never
    deleted by the service.

    Attributes:
        key: The idempotency key provided by the client (opaque, case-sensitive).
        fingerprint: SHA-256 digest of the canonical request (64 hex chars).
        status_code: HTTP status to replay for duplicates.
        response_body: Serialized response, replayed byte for byte.
        created_at: When the record was written.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(
        ...,
        description="Idempotency key provided by the client",
        min_length=1,
        max_length=255,
        examples=["idem-123"],
    )
    fingerprint: str = Field(
        ...,
        description="SHA-256 hash of the canonical request (64 hex characters)",
        examples=["a" * 64],
    )
    status_code: int = Field(
        ...,
        description="HTTP status code of the stored outcome",
        ge=100,
        le=599,
        examples=[201],
    )
    response_body: str = Field(
        ...,
        description="Serialized outcome payload",
    )
    created_at: datetime = Field(
        ...,
        description="Timestamp when the record was created",
    )

    @field_validator("fingerprint")
    @classmethod
    def validate_fingerprint(cls, v: str) -> str:
        """Validate that the fingerprint is a SHA-256 hex string.

        Upper-case hex is accepted; fingerprints are compared ignoring case.

        Raises:
            ValueError: If the fingerprint is not exactly 64 hex characters.
        """
        if len(v) != 64:
            raise ValueError(f"Fingerprint must be exactly 64 characters, got {len(v)}")
        if not all(c in "0123456789abcdefABCDEF" for c in v):
            raise ValueError("Fingerprint must contain only hex characters")
        return v


class CreateQuoteCommand(BaseModel):
    """Input of the create-quote use case.

    Attributes:
        idempotency_key: Trimmed value of the Idempotency-Key header.
        request: The validated request body.
    """

    model_config = ConfigDict(frozen=True)

    idempotency_key: str = Field(..., min_length=1, max_length=255)
    request: CreateQuoteRequest
