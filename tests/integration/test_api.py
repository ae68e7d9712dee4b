"""Integration tests for the FastAPI endpoints using TestClient.

The app is built with :func:`groundwork.main.create_app` and a component
set backed by the in-memory doubles from ``conftest``, so every route runs
through the real services, middleware and schemas.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from groundwork.config.settings import Settings
from groundwork.interfaces.completion_provider import CompletionStream, ICompletionProvider
from groundwork.main import create_app
from groundwork.models.knowledge import ChatMessage
from groundwork.services.completion_proxy import CompletionProxy
from groundwork.services.context_assembler import ContextAssembler
from groundwork.services.ingestion import IngestionService, TextChunker, TextExtractor
from groundwork.services.retrieval_service import RetrievalService
from groundwork.services.smart_search_service import SmartSearchService
from groundwork.utils.errors import StreamInterrupted, UpstreamCompletionError
from tests.conftest import HashEmbeddingProvider, InMemoryDocumentStore

_FRAMES = [
    b'data: {"choices":[{"delta":{"content":"Wash"}}]}\n\n',
    b'data: {"choices":[{"delta":{"content":" hands."}}]}\n\n',
    b"data: [DONE]\n\n",
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _ScriptedStream(CompletionStream):
    def __init__(self, frames: list[bytes], fail_after: int | None = None) -> None:
        self._frames = frames
        self._fail_after = fail_after

    @property
    def status_code(self) -> int:
        return 200

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        for i, frame in enumerate(self._frames):
            if i == self._fail_after:
                raise StreamInterrupted(message="connection reset", provider_name="scripted")
            yield frame

    async def aclose(self) -> None:
        return None


class ScriptedCompletionProvider(ICompletionProvider):
    """Replays canned SSE frames and records the messages it was sent."""

    def __init__(self) -> None:
        self.sent: list[list[ChatMessage]] = []
        self.error: Exception | None = None
        self.fail_after: int | None = None

    async def open_stream(self, messages: list[ChatMessage]) -> CompletionStream:
        self.sent.append(list(messages))
        if self.error is not None:
            raise self.error
        return _ScriptedStream(_FRAMES, self.fail_after)

    def get_model_name(self) -> str:
        return "scripted-model"

    def get_provider_name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return True


@pytest.fixture()
def completion_provider() -> ScriptedCompletionProvider:
    return ScriptedCompletionProvider()


@pytest.fixture()
def components(
    embedding_provider: HashEmbeddingProvider,
    document_store: InMemoryDocumentStore,
    completion_provider: ScriptedCompletionProvider,
) -> dict[str, Any]:
    assembler = ContextAssembler()
    retrieval = RetrievalService(embedding_provider, document_store)
    return {
        "settings": Settings(_env_file=None),
        "embedding_provider": embedding_provider,
        "document_store": document_store,
        "ingestion_service": IngestionService(
            TextExtractor(), TextChunker(), embedding_provider, document_store
        ),
        "retrieval_service": retrieval,
        "context_assembler": assembler,
        "smart_search_service": SmartSearchService(retrieval, assembler),
        "completion_provider": completion_provider,
        "completion_proxy": CompletionProxy(
            completion_provider, retrieval, assembler, grounding_instructions="Use the context."
        ),
    }


@pytest.fixture()
def client(components: dict[str, Any]) -> Iterator[TestClient]:
    with TestClient(create_app(components)) as test_client:
        yield test_client


def _ingest(client: TestClient, *files: tuple[str, bytes, str], **form: str) -> Any:
    return client.post(
        "/api/v1/knowledge/ingest",
        files=[("files", file) for file in files],
        data=form,
    )


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class TestIngestEndpoint:
    def test_ingest_multiple_files(self, client: TestClient, document_store: InMemoryDocumentStore) -> None:
        response = _ingest(
            client,
            ("hygiene.txt", b"Hand hygiene before resident contact.", "text/plain"),
            ("visitors.md", b"# Visitors\n\nSign in at the desk.", "text/markdown"),
            category="policy",
            tenant_id="facility-12",
        )

        assert response.status_code == 200
        body = response.json()
        assert body["inserted_count"] == 2
        assert body["filenames"] == ["hygiene.txt", "visitors.md"]
        assert {row.tenant_id for row in document_store.rows} == {"facility-12"}
        assert {row.category for row in document_store.rows} == {"policy"}

    def test_unsupported_file_is_415_with_filename(
        self, client: TestClient, document_store: InMemoryDocumentStore
    ) -> None:
        response = _ingest(
            client,
            ("ok.txt", b"fine", "text/plain"),
            ("tool.exe", b"MZ\x90\x00", "application/octet-stream"),
        )

        assert response.status_code == 415
        body = response.json()
        assert body["error"] == "UnsupportedFormat"
        assert body["filename"] == "tool.exe"
        assert document_store.rows == []

    def test_blank_file_is_422(self, client: TestClient) -> None:
        response = _ingest(client, ("blank.txt", b"   \n", "text/plain"))

        assert response.status_code == 422
        assert response.json()["error"] == "NoExtractableText"


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class TestSearchEndpoints:
    @pytest.fixture(autouse=True)
    def _seed(self, client: TestClient) -> None:
        _ingest(
            client,
            ("hygiene.txt", b"Per 42 CFR 483.80 staff must perform hand hygiene.", "text/plain"),
            ("visitors.txt", b"Charge Nurse signs visitors in at the front desk.", "text/plain"),
            category="policy",
        )

    def test_search_returns_hits(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/knowledge/search",
            json={"query_text": "hand hygiene", "top_k": 5},
        )

        assert response.status_code == 200
        hits = response.json()
        assert isinstance(hits, list)
        assert len(hits) == 2
        assert set(hits[0]) >= {"id", "category", "title", "content", "score", "match_type"}
        assert hits[0]["category"] == "policy"

    def test_blank_query_is_400(self, client: TestClient) -> None:
        response = client.post("/api/v1/knowledge/search", json={"query_text": "   "})

        assert response.status_code == 400
        assert response.json()["error"] == "EmptyQuery"

    @pytest.mark.parametrize("scope_key", ["tenant_scope", "tenant_id"])
    def test_tenant_scope_hides_other_tenants(self, client: TestClient, scope_key: str) -> None:
        _ingest(client, ("a.txt", b"hand hygiene tenant A", "text/plain"), tenant_id="A")
        _ingest(client, ("b.txt", b"hand hygiene tenant B", "text/plain"), tenant_id="B")

        response = client.post(
            "/api/v1/knowledge/search",
            json={"query_text": "hand hygiene", "top_k": 10, scope_key: "A"},
        )

        contents = [hit["content"] for hit in response.json()]
        assert response.status_code == 200
        assert "hand hygiene tenant A" in contents
        assert "hand hygiene tenant B" not in contents

    def test_smart_search_prioritizes_and_builds_context(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/knowledge/smart-search",
            json={"query_text": "visitors front desk", "profile": {"role": "charge nurse"}},
        )

        assert response.status_code == 200
        body = response.json()
        assert [hit["priority"] for hit in body["results"]] == ["critical", "role"]
        assert body["results"][0]["category_label"] == "Federal Regulation"
        assert body["context"].startswith("### Context")
        assert "(1) [policy] hygiene" in body["context"]


# ---------------------------------------------------------------------------
# Chat streaming
# ---------------------------------------------------------------------------


class TestChatStream:
    def test_stream_relays_frames_with_context(
        self, client: TestClient, completion_provider: ScriptedCompletionProvider
    ) -> None:
        _ingest(client, ("hygiene.txt", b"Wash hands for twenty seconds.", "text/plain"))

        with client.stream(
            "POST",
            "/api/v1/chat/stream",
            json={"conversation": [{"role": "user", "content": "How long do I wash hands?"}]},
        ) as response:
            body = b"".join(response.iter_bytes())

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert body == b"".join(_FRAMES)
        sent = completion_provider.sent[0]
        assert sent[0].role.value == "system"
        assert "Wash hands for twenty seconds." in sent[0].content

    def test_pre_stream_failure_is_502_json(
        self, client: TestClient, completion_provider: ScriptedCompletionProvider
    ) -> None:
        completion_provider.error = UpstreamCompletionError(
            message="HTTP 401", provider_name="scripted", upstream_status=401, detail="bad key"
        )

        response = client.post(
            "/api/v1/chat/stream",
            json={"conversation": [{"role": "user", "content": "hi"}], "use_context": False},
        )

        assert response.status_code == 502
        assert response.json()["upstream_status"] == 401
        assert response.json()["error"] == "UpstreamCompletionError"

    def test_mid_stream_failure_ends_with_error_event(
        self, client: TestClient, completion_provider: ScriptedCompletionProvider
    ) -> None:
        completion_provider.fail_after = 1

        with client.stream(
            "POST",
            "/api/v1/chat/stream",
            json={"conversation": [{"role": "user", "content": "hi"}], "use_context": False},
        ) as response:
            body = b"".join(response.iter_bytes())

        assert response.status_code == 200
        assert body.startswith(_FRAMES[0])
        error_frame = body[len(_FRAMES[0]):]
        assert error_frame.startswith(b"event: error\n")
        assert json.loads(error_frame.split(b"data: ", 1)[1])["error"] == "StreamInterrupted"

    def test_empty_conversation_rejected(self, client: TestClient) -> None:
        response = client.post("/api/v1/chat/stream", json={"conversation": []})

        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health_ok(self, client: TestClient) -> None:
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["embedding_backend"] == "hash-embedding"
        assert body["embedding_dimension"] == 16
        assert body["store_backend"] == "in-memory"
        assert body["completion_model"] == "scripted-model"
        assert body["completion_configured"] is True

    def test_health_degraded_when_store_down(
        self, client: TestClient, document_store: InMemoryDocumentStore
    ) -> None:
        document_store.initialized = False

        body = client.get("/api/v1/health").json()

        assert body["status"] == "degraded"
        assert body["store_available"] is False
