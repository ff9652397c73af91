"""ASGI middleware for the quotes API.

Three Starlette middlewares wrap the application (outermost first):

1. CorrelationIdMiddleware: reads or generates ``X-Correlation-Id``, stores
   it on ``request.state``, binds it into the logging context and echoes it
   on the response
2. RequestLoggingMiddleware: logs one ``http.request`` line per request with
   method, path, status and elapsed time
3. DependencyFailureMiddleware: translates StorageUnavailableError raised
   anywhere below it into a retryable 503 with a stable ``DB_UNAVAILABLE``
   code, distinct from any business error

Examples:
    Installing the stack on a FastAPI app::

        app.add_middleware(DependencyFailureMiddleware, metrics=metrics)
        app.add_middleware(RequestLoggingMiddleware)
        app.add_middleware(CorrelationIdMiddleware)

    Starlette applies the last added middleware outermost.
"""

import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from idempotent_quotes.exceptions import QuoteErrorKind, StorageUnavailableError
from idempotent_quotes.observability.logging import (
    bind_correlation_id,
    clear_request_context,
    get_logger,
)
from idempotent_quotes.observability.metrics import MetricsSink, NullMetricsSink
from idempotent_quotes.utils.headers import CORRELATION_ID_HEADER, RETRY_AFTER_HEADER

CallNext = Callable[[Request], Awaitable[Response]]

logger = get_logger(__name__)


def get_correlation_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Propagates a correlation id through the request, logs and response."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER, "").strip()
        if not correlation_id:
            correlation_id = uuid.uuid4().hex

        request.state.correlation_id = correlation_id
        bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()

        response.headers[CORRELATION_ID_HEADER] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs every request with its final status and duration."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            logger.info(
                "http.request",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
                correlation_id=get_correlation_id(request),
            )


class DependencyFailureMiddleware(BaseHTTPMiddleware):
    """Translates store outages into 503 responses.

    Attributes:
        metrics: Sink notified of every translated outage
        retry_after_seconds: Value sent in the Retry-After header
    """

    def __init__(
        self,
        app: Any,
        metrics: MetricsSink | None = None,
        retry_after_seconds: int = 5,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application
            metrics: Metrics sink (discards events if not provided)
            retry_after_seconds: Retry-After header value for 503 responses
        """
        super().__init__(app)
        self.metrics = metrics or NullMetricsSink()
        self.retry_after_seconds = retry_after_seconds

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        try:
            return await call_next(request)
        except StorageUnavailableError as e:
            self.metrics.dependency_unavailable()
            logger.error(
                "dependency.unavailable",
                error=e.message,
                cause_type=type(e.cause).__name__ if e.cause is not None else None,
                path=request.url.path,
            )

            kind = QuoteErrorKind.DB_UNAVAILABLE
            return JSONResponse(
                status_code=kind.status_code,
                content={
                    "code": kind.code,
                    "message": kind.default_message,
                    "correlationId": get_correlation_id(request),
                },
                headers={RETRY_AFTER_HEADER: str(self.retry_after_seconds)},
            )
