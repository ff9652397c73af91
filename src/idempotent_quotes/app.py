"""FastAPI application for the quotes API.

Routes:
    POST /api/v1/quotes   Create a quote, guarded by the Idempotency-Key header
    GET  /health          Storage reachability check
    GET  /metrics         Prometheus metrics

Request handling for ``POST /api/v1/quotes`` runs in this order: bearer-token
authentication, Idempotency-Key extraction, body validation, then the
orchestrator. Requests rejected at any earlier step never reach the store.

Examples:
    Serving with uvicorn::

        from idempotent_quotes.app import create_app
        from idempotent_quotes.config import QuotesConfig

        app = create_app(QuotesConfig.from_env())
        uvicorn.run(app, port=8000)
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST
from pydantic import ValidationError

from idempotent_quotes import __version__
from idempotent_quotes.adapters.asgi import (
    CorrelationIdMiddleware,
    DependencyFailureMiddleware,
    RequestLoggingMiddleware,
)
from idempotent_quotes.auth import StaticTokenVerifier, TokenVerifier
from idempotent_quotes.config import QuotesConfig
from idempotent_quotes.core.orchestrator import QuoteOrchestrator
from idempotent_quotes.exceptions import (
    AuthenticationError,
    QuoteErrorKind,
    QuotesError,
    StorageUnavailableError,
)
from idempotent_quotes.models import CreateQuoteCommand, CreateQuoteRequest, QuoteResponse
from idempotent_quotes.observability.logging import get_logger
from idempotent_quotes.observability.metrics import PrometheusMetricsSink
from idempotent_quotes.storage import StorageAdapter, create_storage
from idempotent_quotes.utils.headers import (
    extract_bearer_token,
    extract_idempotency_key,
    idempotency_status_headers,
)

logger = get_logger(__name__)


class ApiError(QuotesError):
    """A request rejected before reaching the orchestrator.

    Attributes:
        kind: The error kind, which fixes the status code and the code field
        headers: Extra response headers
    """

    def __init__(
        self,
        kind: QuoteErrorKind,
        message: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message or kind.default_message)
        self.kind = kind
        self.headers = headers or {}


def error_body(kind: QuoteErrorKind, message: str | None = None, **extra: Any) -> dict[str, Any]:
    return {"code": kind.code, "message": message or kind.default_message, **extra}


def _error_field(error: dict[str, Any]) -> str:
    """Dotted wire name of the field a validation error refers to.

    Errors about the body as a whole (undecodable JSON, wrong top-level type)
    are reported against ``body``.
    """
    path = [str(part) for part in error["loc"] if part != "body"]
    if error.get("type") == "json_invalid" or not path:
        return "body"
    return ".".join(path)


async def parse_quote_request(request: Request) -> CreateQuoteRequest:
    """Parse and validate the create-quote body.

    Raises:
        RequestValidationError: If the body is not valid JSON or breaks a
            field rule; locations are prefixed with ``body``.
    """
    raw = await request.body()
    try:
        return CreateQuoteRequest.model_validate_json(raw)
    except ValidationError as e:
        raise RequestValidationError(
            [{**error, "loc": ("body", *error["loc"])} for error in e.errors()]
        ) from e


def create_app(
    config: QuotesConfig | None = None,
    storage: StorageAdapter | None = None,
    metrics: PrometheusMetricsSink | None = None,
    verifier: TokenVerifier | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Configuration (uses defaults if not provided)
        storage: Storage adapter (built from config if not provided)
        metrics: Prometheus sink (a sink on a private registry if not provided)
        verifier: Bearer-token verifier (accepts config.api_tokens if not provided)

    Returns:
        The configured application
    """
    config = config or QuotesConfig()
    owns_storage = storage is None
    storage = storage if storage is not None else create_storage(config)
    metrics = metrics or PrometheusMetricsSink()
    verifier = verifier or StaticTokenVerifier(config.api_tokens)
    orchestrator = QuoteOrchestrator(storage, metrics, config)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info("app.started", storage_adapter=type(storage).__name__)
        yield
        close = getattr(storage, "close", None)
        if owns_storage and close is not None:
            close()
        logger.info("app.stopped")

    app = FastAPI(
        title="Quotes API",
        description="Quote creation guarded by idempotency keys",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.storage = storage
    app.state.metrics = metrics
    app.state.orchestrator = orchestrator

    # Last added runs outermost
    app.add_middleware(
        DependencyFailureMiddleware,
        metrics=metrics,
        retry_after_seconds=config.retry_after_seconds,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    @app.exception_handler(ApiError)
    async def handle_api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.kind.status_code,
            content=error_body(exc.kind, exc.message),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {"field": _error_field(error), "message": error["msg"]} for error in exc.errors()
        ]
        kind = QuoteErrorKind.VALIDATION_ERROR
        return JSONResponse(
            status_code=kind.status_code,
            content=error_body(kind, errors=errors),
        )

    async def require_principal(authorization: str | None = Header(default=None)) -> str:
        token = extract_bearer_token(authorization)
        if token is None:
            raise ApiError(QuoteErrorKind.UNAUTHORIZED, headers={"WWW-Authenticate": "Bearer"})
        try:
            return await verifier.verify(token)
        except AuthenticationError as e:
            raise ApiError(
                QuoteErrorKind.UNAUTHORIZED,
                e.message,
                headers={"WWW-Authenticate": 'Bearer error="invalid_token"'},
            ) from e

    async def require_idempotency_key(request: Request) -> str:
        key = extract_idempotency_key(request.headers)
        if key is None:
            raise ApiError(QuoteErrorKind.IDEMPOTENCY_KEY_REQUIRED)
        if len(key) > config.max_key_length:
            raise ApiError(
                QuoteErrorKind.IDEMPOTENCY_KEY_INVALID,
                f"Idempotency-Key must be at most {config.max_key_length} characters.",
            )
        return key

    @app.post(
        "/api/v1/quotes",
        status_code=201,
        response_model=QuoteResponse,
        responses={
            400: {"description": "Missing Idempotency-Key or invalid payload"},
            401: {"description": "Missing or invalid bearer token"},
            409: {"description": "Idempotency-Key reused with a different payload"},
            503: {"description": "Database dependency unavailable"},
        },
        openapi_extra={
            "requestBody": {
                "required": True,
                "content": {
                    "application/json": {
                        "schema": CreateQuoteRequest.model_json_schema(by_alias=True)
                    }
                },
            }
        },
    )
    async def create_quote(
        request: Request,
        principal: str = Depends(require_principal),
        key: str = Depends(require_idempotency_key),
    ) -> Response:
        # The body is read only after both guards pass
        body = await parse_quote_request(request)
        command = CreateQuoteCommand(idempotency_key=key, request=body)
        result = await orchestrator.create(command)

        if result.error is not None:
            return Response(
                content=result.body,
                status_code=result.status_code,
                media_type="application/json",
            )

        logger.debug("quote.responded", principal=principal, replay=result.is_replay)
        return Response(
            content=result.body,
            status_code=result.status_code,
            media_type="application/json",
            headers=idempotency_status_headers(result.is_replay),
        )

    @app.get("/health")
    async def health() -> JSONResponse:
        try:
            await asyncio.wait_for(storage.ping(), timeout=config.store_timeout_seconds)
        except (StorageUnavailableError, asyncio.TimeoutError) as e:
            logger.warning("health.unhealthy", error=str(e))
            return JSONResponse(status_code=503, content={"status": "unhealthy"})
        return JSONResponse(content={"status": "healthy"})

    @app.get("/metrics")
    async def prometheus_metrics() -> Response:
        return Response(content=metrics.render(), media_type=CONTENT_TYPE_LATEST)

    return app
