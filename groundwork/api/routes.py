"""FastAPI routes for the groundwork knowledge API.

Service handles are resolved from ``app.state`` (populated once at start-up
in ``groundwork.main``) through ``Depends`` using the ``Annotated`` pattern,
so route functions can be exercised with test doubles.

Endpoint                         Method  Description
/api/v1/knowledge/ingest         POST    Multipart upload -> extract, chunk, embed, store
/api/v1/knowledge/search         POST    Hybrid retrieval, raw relevance order
/api/v1/knowledge/smart-search   POST    Retrieval prioritized by caller profile + context
/api/v1/chat/stream              POST    Grounded completion relayed as text/event-stream
/api/v1/health                   GET     Backend and availability report
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Form, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse

from groundwork import __version__
from groundwork.api.middleware import error_response
from groundwork.api.schemas import (
    ChatStreamRequest,
    ErrorResponse,
    HealthResponse,
    IngestResponse,
    SearchHit,
    SearchRequest,
    SmartSearchHit,
    SmartSearchRequest,
    SmartSearchResponse,
)
from groundwork.config.settings import Settings
from groundwork.interfaces.completion_provider import ICompletionProvider
from groundwork.interfaces.document_store import IDocumentStore
from groundwork.interfaces.embedding_provider import IEmbeddingProvider
from groundwork.models.knowledge import UploadedFile
from groundwork.services.completion_proxy import CompletionProxy
from groundwork.services.ingestion import IngestionService
from groundwork.services.retrieval_service import RetrievalService
from groundwork.services.smart_search_service import SmartSearchService
from groundwork.utils.errors import UpstreamCompletionError

logger = structlog.get_logger(logger_name=__name__)

router = APIRouter(prefix="/api/v1")

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


# ---------------------------------------------------------------------------
# Dependency injection helpers: resolve handles from app.state
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def _get_retrieval_service(request: Request) -> RetrievalService:
    return request.app.state.retrieval_service


def _get_smart_search_service(request: Request) -> SmartSearchService:
    return request.app.state.smart_search_service


def _get_completion_proxy(request: Request) -> CompletionProxy:
    return request.app.state.completion_proxy


def _get_embedding_provider(request: Request) -> IEmbeddingProvider:
    return request.app.state.embedding_provider


def _get_document_store(request: Request) -> IDocumentStore:
    return request.app.state.document_store


def _get_completion_provider(request: Request) -> ICompletionProvider:
    return request.app.state.completion_provider


SettingsDep = Annotated[Settings, Depends(_get_settings)]
IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
RetrievalDep = Annotated[RetrievalService, Depends(_get_retrieval_service)]
SmartSearchDep = Annotated[SmartSearchService, Depends(_get_smart_search_service)]
ProxyDep = Annotated[CompletionProxy, Depends(_get_completion_proxy)]
EmbeddingDep = Annotated[IEmbeddingProvider, Depends(_get_embedding_provider)]
StoreDep = Annotated[IDocumentStore, Depends(_get_document_store)]
CompletionDep = Annotated[ICompletionProvider, Depends(_get_completion_provider)]


# ---------------------------------------------------------------------------
# Knowledge
# ---------------------------------------------------------------------------


@router.post(
    "/knowledge/ingest",
    response_model=IngestResponse,
    responses={
        415: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
    summary="Ingest one or more documents into the knowledge corpus",
)
async def ingest_documents(
    files: list[UploadFile],
    ingestion: IngestionDep,
    tenant_id: Annotated[str | None, Form()] = None,
    category: Annotated[str, Form()] = "general",
    title: Annotated[str | None, Form()] = None,
    source_url: Annotated[str | None, Form()] = None,
    last_updated: Annotated[str | None, Form()] = None,
) -> IngestResponse:
    """Read every upload and ingest them as one all-or-nothing batch."""
    uploads = [
        UploadedFile(
            filename=upload.filename or "upload",
            data=await upload.read(),
            content_type=upload.content_type,
        )
        for upload in files
    ]
    result = await ingestion.ingest_files(
        uploads,
        tenant_id=tenant_id or None,
        category=category,
        title=title or None,
        source_url=source_url or None,
        last_updated=last_updated or None,
    )
    return IngestResponse(
        inserted_count=result.inserted_count,
        filenames=result.filenames,
        elapsed_seconds=result.elapsed_seconds,
    )


@router.post(
    "/knowledge/search",
    response_model=list[SearchHit],
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Hybrid search over the corpus",
)
async def search_knowledge(body: SearchRequest, retrieval: RetrievalDep) -> list[SearchHit]:
    scored = await retrieval.retrieve(
        body.query_text,
        tenant_id=body.tenant_id,
        category=body.category,
        top_k=body.top_k,
    )
    return [SearchHit.from_scored(item) for item in scored]


@router.post(
    "/knowledge/smart-search",
    response_model=SmartSearchResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Profile-aware search with an assembled context block",
)
async def smart_search(body: SmartSearchRequest, smart: SmartSearchDep) -> SmartSearchResponse:
    result = await smart.search(
        body.query_text,
        profile=body.profile,
        tenant_id=body.tenant_id,
        category=body.category,
        top_k=body.top_k,
    )
    return SmartSearchResponse(
        results=[SmartSearchHit.from_prioritized(item) for item in result.results],
        context=result.context.text,
    )


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat/stream",
    response_model=None,
    responses={502: {"model": ErrorResponse}},
    summary="Stream a grounded chat completion",
)
async def chat_stream(
    body: ChatStreamRequest,
    request: Request,
    proxy: ProxyDep,
) -> StreamingResponse | JSONResponse:
    """Relay the upstream event stream.

    Failure to open the upstream stream is answered with a JSON error body;
    once streaming has begun, failures arrive as an ``event: error`` frame.
    """
    try:
        relay = await proxy.stream_completion(
            body.conversation,
            use_context=body.use_context,
            tenant_id=body.tenant_id,
            category=body.category,
            profile=body.profile,
            is_disconnected=request.is_disconnected,
        )
    except UpstreamCompletionError as exc:
        logger.warning(
            "completion_stream_rejected",
            upstream_status=exc.upstream_status,
            error=str(exc),
        )
        return error_response(exc)

    return StreamingResponse(relay, media_type="text/event-stream", headers=_SSE_HEADERS)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Service health")
async def health(
    settings: SettingsDep,
    embedding: EmbeddingDep,
    store: StoreDep,
    completion: CompletionDep,
) -> HealthResponse:
    store_available = store.is_available()
    return HealthResponse(
        status="ok" if store_available else "degraded",
        version=__version__,
        embedding_backend=embedding.get_provider_name(),
        embedding_dimension=embedding.get_dimension(),
        store_backend=store.get_provider_name(),
        store_available=store_available,
        completion_model=completion.get_model_name(),
        completion_configured=completion.is_available(),
    )
