"""groundwork FastAPI application entry point.

Builds every provider and service once, from ``.env`` and
``config/config.yaml``, stores the handles on ``app.state`` and mounts the
API routes.  :func:`build_components` is also used by the CLI so both entry
points wire the pipeline identically.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from groundwork import __version__
from groundwork.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from groundwork.api.routes import router as api_router
from groundwork.config.loader import load_config
from groundwork.config.prioritization import PrioritizationRules
from groundwork.config.settings import Settings
from groundwork.providers.completion import OpenAICompatibleCompletionProvider
from groundwork.providers.embedding import build_embedding_provider
from groundwork.providers.store import build_document_store
from groundwork.services.completion_proxy import DEFAULT_GROUNDING_INSTRUCTIONS, CompletionProxy
from groundwork.services.context_assembler import DEFAULT_HEADER, ContextAssembler
from groundwork.services.ingestion import IngestionService, TextChunker, TextExtractor
from groundwork.services.retrieval_service import RetrievalService
from groundwork.services.smart_search_service import SmartSearchService
from groundwork.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Dependency assembly
# ---------------------------------------------------------------------------


def _build_http_client(app_settings: Settings) -> httpx.AsyncClient:
    """Shared client for the completion provider; read timeout covers long streams."""
    timeout = httpx.Timeout(
        app_settings.completion_read_timeout,
        connect=app_settings.completion_connect_timeout,
    )
    return httpx.AsyncClient(timeout=timeout)


def _build_context_assembler(app_config: dict[str, Any]) -> ContextAssembler:
    context_cfg = app_config.get("context") or {}
    return ContextAssembler(
        rules=PrioritizationRules.from_config(app_config),
        snippet_chars=int(context_cfg.get("snippet_chars", 800)),
        char_budget=int(context_cfg.get("char_budget", 12000)),
        header=context_cfg.get("header") or DEFAULT_HEADER,
    )


def build_components(
    app_settings: Settings,
    app_config: dict[str, Any],
    *,
    with_completion: bool = True,
) -> dict[str, Any]:
    """Construct every provider and service.

    Returns a flat dict of named handles destined for ``app.state``.  The
    document store is constructed but not initialized; callers await
    ``document_store.initialize()`` before first use.
    """
    chunking = app_config.get("chunking") or {}
    retrieval_cfg = app_config.get("retrieval") or {}
    context_cfg = app_config.get("context") or {}
    top_k = int(retrieval_cfg.get("top_k", app_settings.retrieval_top_k))

    embedding_provider = build_embedding_provider(app_settings)
    document_store = build_document_store(app_settings)

    chunker = TextChunker(
        chunk_size=int(chunking.get("chunk_size", app_settings.chunk_size)),
        overlap=int(chunking.get("overlap", app_settings.chunk_overlap)),
    )
    ingestion_service = IngestionService(
        extractor=TextExtractor(),
        chunker=chunker,
        embedding_provider=embedding_provider,
        document_store=document_store,
    )
    retrieval_service = RetrievalService(
        embedding_provider=embedding_provider,
        document_store=document_store,
        default_top_k=top_k,
    )
    context_assembler = _build_context_assembler(app_config)
    smart_search_service = SmartSearchService(
        retrieval_service=retrieval_service,
        context_assembler=context_assembler,
        default_top_k=app_settings.smart_search_top_k,
        result_limit=app_settings.smart_search_limit,
    )

    components: dict[str, Any] = {
        "settings": app_settings,
        "embedding_provider": embedding_provider,
        "document_store": document_store,
        "ingestion_service": ingestion_service,
        "retrieval_service": retrieval_service,
        "context_assembler": context_assembler,
        "smart_search_service": smart_search_service,
    }

    if with_completion:
        http_client = _build_http_client(app_settings)
        completion_provider = OpenAICompatibleCompletionProvider(
            http_client=http_client,
            api_key=app_settings.completion_api_key,
            model=app_settings.completion_model,
            base_url=app_settings.completion_base_url,
            referer=app_settings.completion_referer,
            title=app_settings.completion_title,
        )
        components["http_client"] = http_client
        components["completion_provider"] = completion_provider
        components["completion_proxy"] = CompletionProxy(
            completion_provider=completion_provider,
            retrieval_service=retrieval_service,
            context_assembler=context_assembler,
            grounding_instructions=(
                context_cfg.get("grounding_instructions") or DEFAULT_GROUNDING_INSTRUCTIONS
            ),
            top_k=top_k,
        )

    return components


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(components: dict[str, Any] | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    Args:
        components: Pre-built handles to install on ``app.state`` instead of
            building them from settings at start-up.
    """

    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        built = components if components is not None else build_components(settings, config)
        for key, value in built.items():
            setattr(application.state, key, value)

        await built["document_store"].initialize()

        _logger.info(
            "app_startup",
            version=__version__,
            environment=settings.app_env,
            embedding=built["embedding_provider"].get_provider_name(),
            store=built["document_store"].get_provider_name(),
        )

        yield

        http_client: httpx.AsyncClient | None = built.get("http_client")
        if http_client is not None:
            await http_client.aclose()
        _logger.info("app_shutdown")

    application = FastAPI(
        title="groundwork API",
        version=__version__,
        description=(
            "Ingest documents into a private knowledge corpus, search it with "
            "hybrid vector/lexical retrieval, and stream chat completions "
            "grounded in the retrieved context."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.get_cors_origins())

    application.include_router(api_router)
    return application


app = create_app()


def main() -> None:
    uvicorn.run(
        "groundwork.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )


if __name__ == "__main__":
    main()
