"""Orchestrator for document ingestion.

Pipeline stages: **extract -> chunk -> embed -> store**.

:class:`IngestionService` coordinates four injected collaborators (text
extractor, chunker, embedding provider, document store) without any of them
knowing about each other.

A call to :meth:`IngestionService.ingest_files` is all-or-nothing.  Every
file is extracted, chunked and embedded first (one batched embedding call per
file); only when all of them succeed are the rows persisted, in a single
atomic insert.  The first failure aborts the batch with an
:class:`~groundwork.utils.errors.IngestionError` naming the offending file,
and nothing is written.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from pathlib import PurePath

import structlog

from groundwork.interfaces.document_store import IDocumentStore
from groundwork.interfaces.embedding_provider import IEmbeddingProvider
from groundwork.models.knowledge import ChunkDraft, DocumentChunk, IngestionResult, UploadedFile
from groundwork.services.ingestion.chunker import TextChunker
from groundwork.services.ingestion.extractor import TextExtractor
from groundwork.utils.errors import (
    ConfigurationError,
    EmbeddingProviderError,
    GroundworkError,
    IngestionError,
    NoExtractableText,
)

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CATEGORY = "general"


@dataclass
class _PreparedFile:
    upload: UploadedFile
    title: str
    drafts: list[ChunkDraft]
    vectors: list[list[float]]


def default_title(filename: str) -> str:
    """Filename without directory or extension, e.g. ``"infection-control"``."""
    stem = PurePath(filename).stem
    return stem or filename or "untitled"


class IngestionService:
    """Turns uploads into persisted, embedded chunk rows.

    Parameters
    ----------
    extractor:
        Converts raw bytes into text by file type.
    chunker:
        Splits text into overlapping windows (deployment-wide size/overlap).
    embedding_provider:
        Embeds chunk text; the same instance serves query embedding.
    document_store:
        Persists rows atomically.
    """

    def __init__(
        self,
        extractor: TextExtractor,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        document_store: IDocumentStore,
    ) -> None:
        self._extractor = extractor
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._document_store = document_store

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        tenant_id: str | None,
        category: str | None,
        title: str | None,
        file_bytes: bytes,
        filename: str,
        source_url: str | None = None,
        last_updated: str | None = None,
        content_type: str | None = None,
    ) -> int:
        """Ingest a single document and return the number of rows inserted."""
        result = await self.ingest_files(
            [UploadedFile(filename=filename, data=file_bytes, content_type=content_type)],
            tenant_id=tenant_id,
            category=category,
            title=title,
            source_url=source_url,
            last_updated=last_updated,
        )
        return result.inserted_count

    async def ingest_files(
        self,
        files: list[UploadedFile],
        tenant_id: str | None = None,
        category: str | None = DEFAULT_CATEGORY,
        title: str | None = None,
        source_url: str | None = None,
        last_updated: str | None = None,
    ) -> IngestionResult:
        """Ingest one or more uploads as a single atomic batch.

        Each file's chunks are titled *title* when given, otherwise with the
        filename stem.  Chunk metadata records ``filename``, ``mime``,
        ``category`` and ``chunk_index``.

        Returns
        -------
        IngestionResult
            Rows inserted, filenames processed and wall-clock duration.

        Raises
        ------
        IngestionError
            Wrapping the first taxonomy error encountered, with the
            offending filename when the failure is file-specific.
        """
        start = time.monotonic()
        category = category or DEFAULT_CATEGORY

        prepared: list[_PreparedFile] = []
        for upload in files:
            prepared.append(await self._prepare(upload, category=category, title=title))

        rows = [
            DocumentChunk(
                id=str(uuid.uuid4()),
                tenant_id=tenant_id,
                category=category,
                title=item.title,
                content=draft.content,
                embedding=vector,
                metadata=draft.metadata,
                source_url=source_url,
                last_updated=last_updated,
            )
            for item in prepared
            for draft, vector in zip(item.drafts, item.vectors, strict=True)
        ]

        inserted = 0
        if rows:
            try:
                inserted = await self._document_store.insert_chunks(rows)
            except GroundworkError as exc:
                logger.error("ingestion_store_failed", rows=len(rows), error=str(exc))
                raise IngestionError(exc) from exc
            except ValueError as exc:
                logger.error("ingestion_store_rejected", rows=len(rows), error=str(exc))
                raise IngestionError(
                    ConfigurationError(message=str(exc), provider_name=self._document_store.get_provider_name())
                ) from exc

        elapsed = round(time.monotonic() - start, 3)
        filenames = [item.upload.filename for item in prepared]
        logger.info(
            "ingestion_complete",
            files=len(filenames),
            inserted=inserted,
            tenant_id=tenant_id,
            category=category,
            elapsed_seconds=elapsed,
        )
        return IngestionResult(inserted_count=inserted, filenames=filenames, elapsed_seconds=elapsed)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _prepare(self, upload: UploadedFile, category: str, title: str | None) -> _PreparedFile:
        filename = upload.filename
        try:
            text = self._extractor.extract(upload.data, filename, upload.content_type)
            if not text.strip():
                raise NoExtractableText(message="No extractable text")

            doc_title = title or default_title(filename)
            metadata = {
                "filename": filename,
                "mime": upload.content_type,
                "category": category,
            }
            drafts = [
                draft.model_copy(update={"metadata": {**draft.metadata, "chunk_index": draft.index}})
                for draft in self._chunker.chunk(doc_title, text, metadata)
                # A window can land entirely inside a run of padding.
                if draft.content.strip()
            ]

            vectors: list[list[float]] = []
            if drafts:
                vectors = await self._embedding_provider.embed([d.content for d in drafts])
                if len(vectors) != len(drafts):
                    raise EmbeddingProviderError(
                        message=f"Expected {len(drafts)} embeddings, got {len(vectors)}",
                        provider_name=self._embedding_provider.get_provider_name(),
                    )
        except GroundworkError as exc:
            logger.warning(
                "ingestion_file_failed",
                filename=filename,
                code=exc.code,
                error=str(exc),
            )
            raise IngestionError(exc, filename=filename) from exc

        logger.debug("ingestion_file_prepared", filename=filename, chunks=len(drafts))
        return _PreparedFile(upload=upload, title=doc_title, drafts=drafts, vectors=vectors)
