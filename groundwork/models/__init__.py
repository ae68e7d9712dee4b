"""Pydantic data models for groundwork."""

from groundwork.models.knowledge import (
    AssembledContext,
    CallerProfile,
    ChatMessage,
    ChatRole,
    ChunkDraft,
    DocumentChunk,
    IngestionResult,
    MatchType,
    PrioritizedResult,
    PriorityBucket,
    QueryContext,
    ScoredChunk,
    SearchScope,
    SmartSearchResult,
    UploadedFile,
    clamp_top_k,
)

__all__ = [
    "AssembledContext",
    "CallerProfile",
    "ChatMessage",
    "ChatRole",
    "ChunkDraft",
    "DocumentChunk",
    "IngestionResult",
    "MatchType",
    "PrioritizedResult",
    "PriorityBucket",
    "QueryContext",
    "ScoredChunk",
    "SearchScope",
    "SmartSearchResult",
    "UploadedFile",
    "clamp_top_k",
]
