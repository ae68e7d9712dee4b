"""ChromaDB document store adapter.

Wraps a ``chromadb`` collection (cosine space) to implement
:class:`IDocumentStore`.  Embeddings are always computed by groundwork's own
embedding provider, so the collection is opened with a no-op embedding
function.

ChromaDB metadata values cannot be ``None`` and cannot be nested, so rows are
flattened on the way in: missing tenant/category/citation fields are stored
as ``""`` and the provenance map is stored as a JSON string.  A tenant filter
therefore matches ``tenant_id in (tenant, "")``.
"""

from __future__ import annotations

import json
import os
import re
from typing import Any

# Must be set before chromadb is imported.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb  # noqa: E402
import structlog  # noqa: E402

from groundwork.interfaces.document_store import IDocumentStore  # noqa: E402
from groundwork.models.knowledge import (  # noqa: E402
    DocumentChunk,
    MatchType,
    ScoredChunk,
    SearchScope,
)
from groundwork.utils.errors import StoreUnavailable  # noqa: E402

logger = structlog.get_logger(logger_name=__name__)

_GLOBAL_TENANT = ""
_TERM = re.compile(r"\w+", re.UNICODE)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that refuses to run.

    groundwork passes pre-computed vectors everywhere; this stops ChromaDB
    from downloading its default ONNX model when the collection is opened.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:  # noqa: A002
        raise NotImplementedError("groundwork always supplies pre-computed embeddings")

    def name(self) -> str:
        return "noop_precomputed"


def _where(scope: SearchScope | None) -> dict[str, Any] | None:
    clauses: list[dict[str, Any]] = []
    if scope is not None and scope.tenant_id:
        clauses.append({"tenant_id": {"$in": [scope.tenant_id, _GLOBAL_TENANT]}})
    if scope is not None and scope.category:
        clauses.append({"category": scope.category})
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def _where_document(query_text: str) -> tuple[dict[str, Any] | None, list[str]]:
    """Build a ``$contains`` document filter for every query term.

    ``$contains`` is case-sensitive, so each term is tried in lower,
    capitalized and upper case.
    """
    terms = list(dict.fromkeys(t.lower() for t in _TERM.findall(query_text)))
    if not terms:
        return None, []
    variants: list[str] = []
    for term in terms:
        for variant in (term, term.capitalize(), term.upper()):
            if variant not in variants:
                variants.append(variant)
    filters = [{"$contains": v} for v in variants]
    if len(filters) == 1:
        return filters[0], terms
    return {"$or": filters}, terms


class ChromaDBDocumentStore(IDocumentStore):
    """Document store backed by a persistent ChromaDB collection."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "groundwork_knowledge",
        dimension: int | None = None,
        client: Any = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._dimension = dimension
        self._client = client
        self._collection: Any = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        try:
            if self._client is None:
                self._client = chromadb.PersistentClient(
                    path=self._persist_directory,
                    settings=chromadb.config.Settings(anonymized_telemetry=False),
                )
            self._collection = self._client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
            stored_dimension = self._stored_dimension()
        except Exception as exc:
            raise StoreUnavailable(
                message=f"Could not open ChromaDB collection '{self._collection_name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if (
            self._dimension is not None
            and stored_dimension is not None
            and stored_dimension != self._dimension
        ):
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dimension,
                expected_dim=self._dimension,
            )
            raise ValueError(
                f"Embedding dimension mismatch: collection holds {stored_dimension}-dim vectors "
                f"but the deployment is configured for {self._dimension}."
            )
        logger.info(
            "chromadb_store_initialized",
            collection=self._collection_name,
            dimension=stored_dimension,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def vector_search(
        self,
        embedding: list[float],
        top_k: int,
        scope: SearchScope | None = None,
    ) -> list[ScoredChunk]:
        collection = self._require_collection()
        try:
            total = collection.count()
            if total == 0:
                return []
            kwargs: dict[str, Any] = {
                "query_embeddings": [embedding],
                "n_results": min(top_k, total),
                "include": ["documents", "metadatas", "distances", "embeddings"],
            }
            where = _where(scope)
            if where:
                kwargs["where"] = where
            raw = collection.query(**kwargs)
        except Exception as exc:
            raise StoreUnavailable(
                message=f"ChromaDB vector query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = raw["ids"][0] if raw.get("ids") else []
        if not ids:
            return []
        documents = raw["documents"][0]
        metadatas = raw["metadatas"][0]
        distances = raw["distances"][0]
        embeddings = raw["embeddings"][0]

        results: list[ScoredChunk] = []
        for i, chunk_id in enumerate(ids):
            chunk = self._to_chunk(chunk_id, documents[i], metadatas[i], embeddings[i])
            results.append(
                ScoredChunk(
                    chunk=chunk,
                    score=1.0 - float(distances[i]),
                    rank=i + 1,
                    match_type=MatchType.VECTOR,
                )
            )
        logger.debug("chromadb_vector_search", results=len(results))
        return results

    async def lexical_search(
        self,
        query_text: str,
        top_k: int,
        scope: SearchScope | None = None,
    ) -> list[ScoredChunk]:
        where_document, terms = _where_document(query_text)
        if where_document is None:
            return []

        collection = self._require_collection()
        try:
            kwargs: dict[str, Any] = {
                "where_document": where_document,
                "include": ["documents", "metadatas", "embeddings"],
            }
            where = _where(scope)
            if where:
                kwargs["where"] = where
            raw = collection.get(**kwargs)
        except Exception as exc:
            raise StoreUnavailable(
                message=f"ChromaDB lexical query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        scored: list[tuple[float, DocumentChunk]] = []
        for i, chunk_id in enumerate(raw.get("ids") or []):
            document = raw["documents"][i]
            lowered = document.lower()
            hits = sum(lowered.count(term) for term in terms)
            chunk = self._to_chunk(chunk_id, document, raw["metadatas"][i], raw["embeddings"][i])
            scored.append((float(hits), chunk))

        scored.sort(key=lambda pair: (-pair[0], pair[1].id))
        results = [
            ScoredChunk(chunk=chunk, score=hits, rank=i + 1, match_type=MatchType.LEXICAL)
            for i, (hits, chunk) in enumerate(scored[:top_k])
        ]
        logger.debug("chromadb_lexical_search", terms=len(terms), results=len(results))
        return results

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_chunks(self, chunks: list[DocumentChunk]) -> int:
        if not chunks:
            return 0
        collection = self._require_collection()

        batch_dimension = len(chunks[0].embedding)
        if any(len(chunk.embedding) != batch_dimension for chunk in chunks):
            raise ValueError("All embeddings in a batch must have the same dimensionality")
        if self._dimension is not None and batch_dimension != self._dimension:
            raise ValueError(
                f"Batch embeddings have {batch_dimension} dimensions; "
                f"deployment is configured for {self._dimension}"
            )
        stored_dimension = self._stored_dimension()
        if stored_dimension is not None and stored_dimension != batch_dimension:
            raise ValueError(
                f"Batch embeddings have {batch_dimension} dimensions; "
                f"collection holds {stored_dimension}"
            )

        max_batch = self._client.get_max_batch_size() if self._client is not None else len(chunks)
        written: list[str] = []
        try:
            for start in range(0, len(chunks), max_batch):
                batch = chunks[start : start + max_batch]
                collection.add(
                    ids=[c.id for c in batch],
                    embeddings=[c.embedding for c in batch],
                    documents=[c.content for c in batch],
                    metadatas=[self._to_metadata(c) for c in batch],
                )
                written.extend(c.id for c in batch)
        except Exception as exc:
            if written:
                # Undo earlier sub-batches so the ingestion stays all-or-nothing.
                collection.delete(ids=written)
                logger.warning("chromadb_partial_insert_reverted", reverted=len(written))
            raise StoreUnavailable(
                message=f"ChromaDB insert of {len(chunks)} chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_chunks_inserted", count=len(chunks), dimension=batch_dimension)
        return len(chunks)

    async def count(self, scope: SearchScope | None = None) -> int:
        collection = self._require_collection()
        try:
            where = _where(scope)
            if where is None:
                return int(collection.count())
            return len(collection.get(where=where, include=[])["ids"])
        except Exception as exc:
            raise StoreUnavailable(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        return self._collection is not None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_collection(self) -> Any:
        if self._collection is None:
            raise StoreUnavailable(
                message="ChromaDB store used before initialize()",
                provider_name=self.get_provider_name(),
            )
        return self._collection

    def _stored_dimension(self) -> int | None:
        if self._collection.count() == 0:
            return None
        sample = self._collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return None
        return len(embeddings[0])

    @staticmethod
    def _to_metadata(chunk: DocumentChunk) -> dict[str, Any]:
        return {
            "tenant_id": chunk.tenant_id or _GLOBAL_TENANT,
            "category": chunk.category or "",
            "title": chunk.title,
            "source_url": chunk.source_url or "",
            "last_updated": chunk.last_updated or "",
            "metadata_json": json.dumps(chunk.metadata),
        }

    @staticmethod
    def _to_chunk(
        chunk_id: str,
        document: str,
        metadata: dict[str, Any] | None,
        embedding: Any,
    ) -> DocumentChunk:
        meta = metadata or {}
        return DocumentChunk(
            id=chunk_id,
            tenant_id=meta.get("tenant_id") or None,
            category=meta.get("category") or None,
            title=meta.get("title") or "untitled",
            content=document,
            embedding=[float(x) for x in embedding] if embedding is not None else [],
            metadata=json.loads(meta.get("metadata_json") or "{}"),
            source_url=meta.get("source_url") or None,
            last_updated=meta.get("last_updated") or None,
        )
