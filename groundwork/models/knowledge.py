"""Knowledge-base data models for the groundwork RAG pipeline.

Defines Pydantic v2 models for stored chunks, chunker output, retrieval
queries and results, assembled context blocks, and ingestion outcomes.
All models are frozen: chunks are immutable once written, and the
per-request models are created and discarded within a single request.

Flow through the models:

    ChunkDraft (chunker) --embed--> DocumentChunk (store row)
    QueryContext (retriever input) --search--> ScoredChunk list
    ScoredChunk list --assemble--> AssembledContext
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_TOP_K = 1
MAX_TOP_K = 50


def clamp_top_k(requested: int) -> int:
    """Clamp a caller-supplied result count to ``[MIN_TOP_K, MAX_TOP_K]``."""
    return max(MIN_TOP_K, min(MAX_TOP_K, int(requested)))


# ---------------------------------------------------------------------------
# Stored rows
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A persisted chunk of a source document.

    ``tenant_id`` of ``None`` marks a globally visible chunk.  The
    embedding length is fixed per deployment; the document stores reject
    rows whose dimensionality disagrees with what is already stored.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Opaque identifier assigned at persist time.")
    tenant_id: str | None = Field(default=None, description="Facility/tenant scope; None means global.")
    category: str | None = Field(default=None, description="Free-text classification tag.")
    title: str = Field(description="Label inherited from the source document.")
    content: str = Field(description="Normalized chunk text.")
    embedding: list[float] = Field(default_factory=list, description="L2-normalized embedding vector.")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Provenance (filename, mime, category). Never used for ranking.",
    )
    source_url: str | None = Field(default=None, description="Citation link, if any.")
    last_updated: str | None = Field(default=None, description="Citation date string, if any.")

    @field_validator("title", "content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value


class ChunkDraft(BaseModel):
    """A chunk produced by the chunker, before embedding.

    ``start``/``end`` are half-open character offsets into the normalized
    document text, so ``normalized[start:end] == content``.
    """

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, description="Zero-based position within the document.")
    title: str
    content: str
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------
class SearchScope(BaseModel):
    """Tenant and category filters applied to both search paths."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str | None = None
    category: str | None = None


class QueryContext(BaseModel):
    """A single retrieval request.  ``requested_k`` is clamped on construction."""

    model_config = ConfigDict(frozen=True)

    query_text: str
    scope: SearchScope = Field(default_factory=SearchScope)
    requested_k: int = 6

    @field_validator("requested_k", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_top_k(value)


class MatchType(str, Enum):
    """Which search path produced a result."""

    VECTOR = "vector"
    LEXICAL = "lexical"


class ScoredChunk(BaseModel):
    """A retrieved chunk with its relevance score and 1-based rank.

    For vector matches ``score`` is cosine similarity; for lexical matches it
    is the engine's relevance (higher is better in both cases).
    """

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk
    score: float
    rank: int = Field(ge=1)
    match_type: MatchType = MatchType.VECTOR


class AssembledContext(BaseModel):
    """A formatted context block plus the chunks it was built from.

    ``used_chunks[i]`` is the chunk cited as ``(i + 1)`` in ``text``.
    """

    model_config = ConfigDict(frozen=True)

    text: str = ""
    used_chunks: list[ScoredChunk] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.text


class CallerProfile(BaseModel):
    """Caller attributes supplied by the identity layer, used only for prioritization."""

    model_config = ConfigDict(frozen=True)

    role: str | None = None
    facility_name: str | None = None
    facility_state: str | None = None


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------
class ChatRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One conversation turn in OpenAI chat format."""

    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str

    def to_payload(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------
class UploadedFile(BaseModel):
    """Raw bytes of one uploaded document."""

    model_config = ConfigDict(frozen=True)

    filename: str
    data: bytes
    content_type: str | None = None


class IngestionResult(BaseModel):
    """Outcome of one (possibly multi-file) ingestion batch."""

    model_config = ConfigDict(frozen=True)

    inserted_count: int = Field(ge=0)
    filenames: list[str] = Field(default_factory=list)
    elapsed_seconds: float = Field(default=0.0, ge=0.0)


# ---------------------------------------------------------------------------
# Smart search
# ---------------------------------------------------------------------------
class PriorityBucket(str, Enum):
    """Prioritization buckets, in the order they are emitted."""

    CRITICAL = "critical"
    ROLE = "role"
    FACILITY = "facility"
    GENERAL = "general"


class PrioritizedResult(BaseModel):
    """A retrieved chunk after prioritization, with its display label."""

    model_config = ConfigDict(frozen=True)

    scored: ScoredChunk
    bucket: PriorityBucket
    category_label: str


class SmartSearchResult(BaseModel):
    """Prioritized results plus the context block built from them."""

    model_config = ConfigDict(frozen=True)

    results: list[PrioritizedResult] = Field(default_factory=list)
    context: AssembledContext = Field(default_factory=AssembledContext)
