"""API middleware: CORS, request logging and error handling.

Middleware order (Starlette runs the last-added middleware first)::

    app.add_middleware(ErrorHandlingMiddleware)    # inner
    app.add_middleware(RequestLoggingMiddleware)   # outer

so the request log records the final status code, including responses the
error handler produced.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from bookrouter.api.schemas import ErrorResponse
from bookrouter.utils.errors import (
    BookRouterError,
    ConfigurationError,
    ProviderUnavailableError,
    RateLimitError,
)
from bookrouter.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware.  Defaults to ``["*"]``; restrict in production."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with a request id, status code and duration.

    The request id is bound into structlog's context variables, so every
    pipeline log line emitted while serving the request carries it.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            structlog.contextvars.unbind_contextvars("request_id")


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


def _status_for(exc: BookRouterError) -> int:
    if isinstance(exc, RateLimitError):
        return 429
    if isinstance(exc, (ProviderUnavailableError, ConfigurationError)):
        return 503
    return 500


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert stray ``BookRouterError`` subclasses into JSON error bodies.

    The pipeline recovers from provider failures itself; this only catches
    errors raised outside it (startup wiring, direct provider use).  Details
    are logged server-side and the client sees the error type and message.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except BookRouterError as exc:
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            return JSONResponse(status_code=_status_for(exc), content=body.model_dump())
