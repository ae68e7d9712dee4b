"""API middleware: CORS, request logging and error translation.

Starlette middleware is a stack (last added runs first).  ``main.py`` adds
:class:`ErrorHandlingMiddleware` before :class:`RequestLoggingMiddleware`,
so the request log records the final status after errors were translated::

    client -> RequestLogging -> ErrorHandling -> route
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from groundwork.api.schemas import ErrorResponse
from groundwork.utils.errors import (
    ConfigurationError,
    EmbeddingProviderError,
    EmptyQuery,
    ExtractionFailed,
    GroundworkError,
    IngestionError,
    InvalidChunkConfig,
    NoExtractableText,
    StoreUnavailable,
    StreamInterrupted,
    UnsupportedFormat,
    UpstreamCompletionError,
)
from groundwork.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# Most specific first; IngestionError is resolved through its cause.
_STATUS_BY_ERROR: tuple[tuple[type[GroundworkError], int], ...] = (
    (UnsupportedFormat, 415),
    (NoExtractableText, 422),
    (ExtractionFailed, 422),
    (EmptyQuery, 400),
    (InvalidChunkConfig, 400),
    (EmbeddingProviderError, 502),
    (UpstreamCompletionError, 502),
    (StreamInterrupted, 502),
    (StoreUnavailable, 503),
    (ConfigurationError, 500),
)


def status_for(exc: GroundworkError) -> int:
    """HTTP status for a groundwork error."""
    target = exc.cause if isinstance(exc, IngestionError) else exc
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(target, error_type):
            return status
    return 500


def error_response(exc: GroundworkError) -> JSONResponse:
    """Render *exc* as an :class:`ErrorResponse` JSON body."""
    body = ErrorResponse(
        error=exc.code,
        detail=exc.cause.message if isinstance(exc, IngestionError) else exc.message,
        filename=exc.filename if isinstance(exc, IngestionError) else None,
        upstream_status=exc.upstream_status if isinstance(exc, UpstreamCompletionError) else None,
    )
    return JSONResponse(status_code=status_for(exc), content=body.model_dump())


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware.  Defaults to ``["*"]``; restrict in production."""
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code and duration.

    For streaming responses the duration covers time to first byte only.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert any escaped :class:`GroundworkError` into a JSON error body.

    Route handlers normally let taxonomy errors propagate; the full error
    is logged here and the client receives only the code and message.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except GroundworkError as exc:
            _logger.error(
                "application_error",
                code=exc.code,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            return error_response(exc)
