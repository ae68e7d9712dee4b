"""groundwork API layer: routes, schemas and middleware."""

from groundwork.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from groundwork.api.routes import router
from groundwork.api.schemas import (
    ChatStreamRequest,
    ErrorResponse,
    HealthResponse,
    IngestResponse,
    SearchHit,
    SearchRequest,
    SmartSearchRequest,
    SmartSearchResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ChatStreamRequest",
    "ErrorResponse",
    "HealthResponse",
    "IngestResponse",
    "SearchHit",
    "SearchRequest",
    "SmartSearchRequest",
    "SmartSearchResponse",
]
