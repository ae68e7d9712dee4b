"""End-to-end retrieval flow against a real SQLite store.

Documents are ingested, retrieved and rendered into a context block using
the production services; only the embedding model is replaced by the
deterministic hash embedder.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from groundwork.models.knowledge import CallerProfile, MatchType, PriorityBucket, UploadedFile
from groundwork.providers.store.sqlite_document_store import SQLiteDocumentStore
from groundwork.services.context_assembler import ContextAssembler
from groundwork.services.ingestion import IngestionService, TextChunker, TextExtractor
from groundwork.services.retrieval_service import RetrievalService
from groundwork.services.smart_search_service import SmartSearchService
from tests.conftest import TEST_DIMENSION, HashEmbeddingProvider

_CORPUS = {
    "visitor-policy.txt": "Visitors sign in at the front desk and wear a badge.",
    "hand-hygiene.txt": "Per 42 CFR 483.80 staff must perform hand hygiene before resident contact.",
    "oak-grove.txt": "Oak Grove charge nurse rounds start at 7am on the east wing.",
}


@pytest.fixture()
async def pipeline(tmp_path: Path) -> dict:
    embedder = HashEmbeddingProvider()
    store = SQLiteDocumentStore(db_path=tmp_path / "knowledge.db", dimension=TEST_DIMENSION)
    await store.initialize()
    assembler = ContextAssembler()
    retrieval = RetrievalService(embedder, store)
    ingestion = IngestionService(TextExtractor(), TextChunker(), embedder, store)

    await ingestion.ingest_files(
        [UploadedFile(filename=name, data=text.encode("utf-8")) for name, text in _CORPUS.items()],
        category="policy",
        source_url="https://example.org/handbook",
    )
    await ingestion.ingest_files(
        [UploadedFile(filename="private.txt", data=b"Facility twelve visitors use the side door.")],
        tenant_id="facility-12",
        category="policy",
    )
    return {
        "store": store,
        "retrieval": retrieval,
        "assembler": assembler,
        "smart": SmartSearchService(retrieval, assembler),
    }


async def test_corpus_persisted(pipeline: dict) -> None:
    assert await pipeline["store"].count() == 4


async def test_retrieve_then_assemble(pipeline: dict) -> None:
    scored = await pipeline["retrieval"].retrieve("Visitors sign in at the front desk", top_k=2)

    assert scored[0].chunk.title == "visitor-policy"
    assert scored[0].match_type is MatchType.VECTOR

    context = pipeline["assembler"].assemble(scored)
    assert context.text.startswith("### Context")
    assert "(1) [policy] visitor-policy [source](https://example.org/handbook)" in context.text
    assert context.used_chunks == scored


async def test_other_tenants_rows_stay_hidden(pipeline: dict) -> None:
    scoped = await pipeline["retrieval"].retrieve("visitors door", tenant_id="facility-12", top_k=10)
    other = await pipeline["retrieval"].retrieve("visitors door", tenant_id="facility-99", top_k=10)

    assert "private" in {r.chunk.title for r in scoped}
    assert "private" not in {r.chunk.title for r in other}


async def test_regulatory_chunk_leads_smart_search(pipeline: dict) -> None:
    result = await pipeline["smart"].search(
        "visitors badge front desk",
        profile=CallerProfile(role="Charge Nurse", facility_name="Oak Grove"),
    )

    buckets = [item.bucket for item in result.results]
    assert buckets[0] is PriorityBucket.CRITICAL
    assert result.results[0].scored.chunk.title == "hand-hygiene"
    assert result.results[0].category_label == "Federal Regulation"
    assert PriorityBucket.ROLE in buckets
    assert buckets.index(PriorityBucket.ROLE) < buckets.index(PriorityBucket.GENERAL)
    assert "(1) [policy] hand-hygiene" in result.context.text
