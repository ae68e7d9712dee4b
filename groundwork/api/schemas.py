"""Pydantic request/response schemas for the groundwork HTTP API.

Request schemas end with ``Request``, response schemas with ``Response``.
Internal models from :mod:`groundwork.models` are never returned directly;
the ``from_*`` constructors below map them onto the public shapes.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, Field

from groundwork.models.knowledge import (
    CallerProfile,
    ChatMessage,
    PrioritizedResult,
    ScoredChunk,
)


def _tenant_field() -> Any:
    # Clients may send the scope as ``tenant_scope`` or ``tenant_id``.
    return Field(
        default=None,
        validation_alias=AliasChoices("tenant_scope", "tenant_id"),
        description="Tenant/facility scope; global rows are always included.",
    )


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Structured error body returned for every failed request."""

    error: str = Field(description="Stable error code, e.g. UnsupportedFormat.")
    detail: str = Field(description="Human-readable explanation.")
    filename: str | None = Field(default=None, description="Offending upload, for ingestion errors.")
    upstream_status: int | None = Field(
        default=None,
        description="HTTP status from the completion provider, when it answered.",
    )


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class IngestResponse(BaseModel):
    inserted_count: int
    filenames: list[str] = Field(default_factory=list)
    elapsed_seconds: float = 0.0


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class SearchRequest(BaseModel):
    """Retrieval request.  ``top_k`` is clamped server-side to 1..50."""

    query_text: str = Field(description="Natural-language query.")
    top_k: int | None = Field(default=None, description="Requested result count.")
    category: str | None = None
    tenant_id: str | None = _tenant_field()


class SearchHit(BaseModel):
    id: str
    category: str | None = None
    title: str
    content: str
    source_url: str | None = None
    score: float
    match_type: str

    @classmethod
    def from_scored(cls, scored: ScoredChunk) -> SearchHit:
        chunk = scored.chunk
        return cls(
            id=chunk.id,
            category=chunk.category,
            title=chunk.title,
            content=chunk.content,
            source_url=chunk.source_url,
            score=scored.score,
            match_type=scored.match_type.value,
        )


class SmartSearchRequest(BaseModel):
    query_text: str
    top_k: int | None = None
    category: str | None = None
    tenant_id: str | None = _tenant_field()
    profile: CallerProfile | None = Field(
        default=None,
        description="Caller role/facility supplied by the identity layer.",
    )


class SmartSearchHit(SearchHit):
    category_label: str
    priority: str

    @classmethod
    def from_prioritized(cls, item: PrioritizedResult) -> SmartSearchHit:
        base = SearchHit.from_scored(item.scored)
        return cls(
            **base.model_dump(),
            category_label=item.category_label,
            priority=item.bucket.value,
        )


class SmartSearchResponse(BaseModel):
    results: list[SmartSearchHit] = Field(default_factory=list)
    context: str = ""


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatStreamRequest(BaseModel):
    """Streaming chat request; the reply is a ``text/event-stream``."""

    conversation: list[ChatMessage] = Field(min_length=1)
    use_context: bool = True
    category: str | None = None
    tenant_id: str | None = _tenant_field()
    profile: CallerProfile | None = None


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    embedding_backend: str
    embedding_dimension: int
    store_backend: str
    store_available: bool
    completion_model: str
    completion_configured: bool
