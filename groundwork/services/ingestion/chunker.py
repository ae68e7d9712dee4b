"""Fixed-size sliding-window text chunking.

Splits normalized document text into :class:`~groundwork.models.knowledge.ChunkDraft`
objects of at most ``chunk_size`` characters, consecutive windows sharing
``overlap`` characters.

The algorithm is deliberately character-based and boundary-agnostic so that
chunk offsets are exactly reproducible:

1. Normalize the text (see
   :func:`~groundwork.utils.text_normalizer.normalize_document_text`).
2. If the normalized length is at most ``chunk_size``, emit one chunk.
3. Otherwise emit ``[start, min(start + chunk_size, L))`` and advance
   ``start`` by ``chunk_size - overlap`` until a window reaches the end.
   The final window may be shorter than ``chunk_size``.

With ``chunk_size=1200, overlap=150`` a 3000-character text yields the
windows ``[0, 1200)``, ``[1050, 2250)`` and ``[2100, 3000)``.
"""

from __future__ import annotations

from typing import Any

import structlog

from groundwork.models.knowledge import ChunkDraft
from groundwork.utils.errors import InvalidChunkConfig
from groundwork.utils.text_normalizer import normalize_document_text

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CHUNK_SIZE = 1200
DEFAULT_OVERLAP = 150


def validate_chunk_config(chunk_size: int, overlap: int) -> None:
    """Raise :class:`InvalidChunkConfig` unless ``0 <= overlap < chunk_size``."""
    if chunk_size <= 0:
        raise InvalidChunkConfig(message=f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise InvalidChunkConfig(message=f"overlap must not be negative, got {overlap}")
    if overlap >= chunk_size:
        raise InvalidChunkConfig(
            message=f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
        )


def window_offsets(length: int, chunk_size: int, overlap: int) -> list[tuple[int, int]]:
    """Return the half-open ``(start, end)`` windows covering ``[0, length)``."""
    validate_chunk_config(chunk_size, overlap)
    if length <= 0:
        return []
    if length <= chunk_size:
        return [(0, length)]

    step = chunk_size - overlap
    windows: list[tuple[int, int]] = []
    start = 0
    while True:
        end = min(start + chunk_size, length)
        windows.append((start, end))
        if end == length:
            break
        start += step
    return windows


def chunk_text(
    title: str,
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
    metadata: dict[str, Any] | None = None,
) -> list[ChunkDraft]:
    """Split *text* into overlapping drafts sharing *title* and *metadata*.

    Args:
        title: Label copied onto every chunk.
        text: Raw extracted text; normalized before splitting.
        chunk_size: Maximum characters per chunk.
        overlap: Characters shared by consecutive chunks.
        metadata: Provenance copied onto every chunk.

    Returns:
        Drafts in document order.  Blank input yields an empty list.

    Raises:
        InvalidChunkConfig: If ``overlap >= chunk_size`` or either is out
            of range.
    """
    validate_chunk_config(chunk_size, overlap)
    normalized = normalize_document_text(text)
    shared = dict(metadata or {})

    drafts = [
        ChunkDraft(
            index=i,
            title=title,
            content=normalized[start:end],
            start=start,
            end=end,
            metadata=shared,
        )
        for i, (start, end) in enumerate(window_offsets(len(normalized), chunk_size, overlap))
    ]
    logger.debug(
        "text_chunked",
        title=title,
        normalized_length=len(normalized),
        chunks=len(drafts),
    )
    return drafts


class TextChunker:
    """Chunker bound to deployment-wide ``chunk_size`` and ``overlap``.

    The configuration is validated once, at construction, so a bad
    deployment fails at start-up rather than on the first upload.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, overlap: int = DEFAULT_OVERLAP) -> None:
        validate_chunk_config(chunk_size, overlap)
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk(self, title: str, text: str, metadata: dict[str, Any] | None = None) -> list[ChunkDraft]:
        return chunk_text(title, text, self._chunk_size, self._overlap, metadata)
