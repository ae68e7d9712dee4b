"""Shared pytest fixtures for the groundwork test suite."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any

import pytest

from groundwork.config.prioritization import PrioritizationRules
from groundwork.interfaces.document_store import IDocumentStore
from groundwork.interfaces.embedding_provider import IEmbeddingProvider
from groundwork.models.knowledge import (
    DocumentChunk,
    MatchType,
    ScoredChunk,
    SearchScope,
)
from groundwork.services.context_assembler import ContextAssembler
from groundwork.utils.errors import StoreUnavailable
from groundwork.utils.vectors import cosine_similarities, l2_normalize

TEST_DIMENSION = 16


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class HashEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words embeddings.

    Each lower-cased word is hashed into one of ``dimension`` buckets, so
    texts sharing words are close in cosine space and identical texts map
    to identical vectors.
    """

    def __init__(self, dimension: int = TEST_DIMENSION) -> None:
        self._dimension = dimension
        self.embed_calls: list[list[str]] = []

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in text.lower().split():
            digest = hashlib.sha256(word.encode("utf-8")).digest()
            vector[digest[0] % self._dimension] += 1.0
        return vector

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.embed_calls.append(list(texts))
        return l2_normalize([self._vector(t) for t in texts])

    async def embed_one(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "hash-embedding"

    def is_available(self) -> bool:
        return True


class InMemoryDocumentStore(IDocumentStore):
    """List-backed store with the same scope semantics as the real adapters.

    Set ``fail_vector`` / ``fail_lexical`` to an exception instance to make
    the corresponding search raise it.
    """

    def __init__(self) -> None:
        self.rows: list[DocumentChunk] = []
        self.fail_vector: Exception | None = None
        self.fail_lexical: Exception | None = None
        self.fail_insert: Exception | None = None
        self.insert_calls = 0
        self.vector_calls = 0
        self.lexical_calls = 0
        self.initialized = False

    async def initialize(self) -> None:
        self.initialized = True

    def _in_scope(self, row: DocumentChunk, scope: SearchScope | None) -> bool:
        if scope is None:
            return True
        if scope.tenant_id is not None and row.tenant_id not in (scope.tenant_id, None):
            return False
        if scope.category is not None and row.category != scope.category:
            return False
        return True

    async def vector_search(
        self,
        embedding: list[float],
        top_k: int,
        scope: SearchScope | None = None,
    ) -> list[ScoredChunk]:
        self.vector_calls += 1
        if self.fail_vector is not None:
            raise self.fail_vector
        rows = [r for r in self.rows if self._in_scope(r, scope)]
        if not rows:
            return []
        scores = cosine_similarities(embedding, [r.embedding for r in rows])
        ranked = sorted(zip(rows, scores), key=lambda pair: -pair[1])[:top_k]
        return [
            ScoredChunk(chunk=row, score=score, rank=i + 1, match_type=MatchType.VECTOR)
            for i, (row, score) in enumerate(ranked)
        ]

    async def lexical_search(
        self,
        query_text: str,
        top_k: int,
        scope: SearchScope | None = None,
    ) -> list[ScoredChunk]:
        self.lexical_calls += 1
        if self.fail_lexical is not None:
            raise self.fail_lexical
        terms = [t for t in query_text.lower().split() if t]
        hits = []
        for row in self.rows:
            if not self._in_scope(row, scope):
                continue
            score = sum(row.content.lower().count(t) for t in terms)
            if score:
                hits.append((row, float(score)))
        hits.sort(key=lambda pair: -pair[1])
        return [
            ScoredChunk(chunk=row, score=score, rank=i + 1, match_type=MatchType.LEXICAL)
            for i, (row, score) in enumerate(hits[:top_k])
        ]

    async def insert_chunks(self, chunks: list[DocumentChunk]) -> int:
        self.insert_calls += 1
        if self.fail_insert is not None:
            raise self.fail_insert
        self.rows.extend(chunks)
        return len(chunks)

    async def count(self, scope: SearchScope | None = None) -> int:
        return sum(1 for r in self.rows if self._in_scope(r, scope))

    def get_provider_name(self) -> str:
        return "in-memory"

    def is_available(self) -> bool:
        return self.initialized


def make_chunk(
    content: str,
    *,
    chunk_id: str = "c1",
    title: str = "Doc",
    category: str | None = "general",
    tenant_id: str | None = None,
    source_url: str | None = None,
    embedding: list[float] | None = None,
) -> DocumentChunk:
    return DocumentChunk(
        id=chunk_id,
        tenant_id=tenant_id,
        category=category,
        title=title,
        content=content,
        embedding=embedding or [1.0] + [0.0] * (TEST_DIMENSION - 1),
        source_url=source_url,
    )


def make_scored(chunks: list[DocumentChunk], match_type: MatchType = MatchType.VECTOR) -> list[ScoredChunk]:
    """Wrap *chunks* with descending scores in list order."""
    return [
        ScoredChunk(chunk=c, score=1.0 - i * 0.1, rank=i + 1, match_type=match_type)
        for i, c in enumerate(chunks)
    ]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def embedding_provider() -> HashEmbeddingProvider:
    return HashEmbeddingProvider()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def unreachable_store() -> InMemoryDocumentStore:
    store = InMemoryDocumentStore()
    store.fail_vector = StoreUnavailable(message="connection refused", provider_name="in-memory")
    store.fail_lexical = StoreUnavailable(message="connection refused", provider_name="in-memory")
    return store


@pytest.fixture
def context_assembler() -> ContextAssembler:
    return ContextAssembler(rules=PrioritizationRules.defaults())


@pytest.fixture
def sample_config() -> dict[str, Any]:
    """Minimal application config mirroring ``config/config.yaml``."""
    return {
        "chunking": {"chunk_size": 1200, "overlap": 150},
        "retrieval": {"top_k": 6},
        "context": {"snippet_chars": 800, "char_budget": 12000},
        "prioritization": {
            "critical_patterns": [r"\b(cfr|f-?tag|must|shall)\b"],
            "category_rules": [
                {"label": "Federal Regulation", "keywords": ["cfr", "cms"]},
                {"label": "Policy", "keywords": ["policy", "procedure"]},
            ],
            "default_label": "General",
        },
    }
