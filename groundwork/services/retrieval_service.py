"""Hybrid retrieval: vector similarity first, lexical search as fallback.

:meth:`RetrievalService.retrieve` never surfaces a raw store or embedding
exception.  The fallback chain is:

1. Embed the query and run a vector search.
2. If embedding or vector search raises, or returns no rows, run a lexical
   search over the same scope.
3. If the lexical search raises too, return an empty list.

The only error that escapes (besides :class:`EmptyQuery` for blank input)
is :class:`StoreUnavailable` when *both* search paths report the store as
unreachable; the completion proxy treats that as "no context".  Every
absorbed failure is logged.
"""

from __future__ import annotations

import structlog

from groundwork.interfaces.document_store import IDocumentStore
from groundwork.interfaces.embedding_provider import IEmbeddingProvider
from groundwork.models.knowledge import QueryContext, ScoredChunk, SearchScope
from groundwork.utils.errors import EmptyQuery, StoreUnavailable

logger = structlog.get_logger(logger_name=__name__)


class RetrievalService:
    """Scoped top-K retrieval over the document store."""

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        document_store: IDocumentStore,
        default_top_k: int = 6,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._document_store = document_store
        self._default_top_k = default_top_k

    async def retrieve(
        self,
        query_text: str,
        tenant_id: str | None = None,
        category: str | None = None,
        top_k: int | None = None,
    ) -> list[ScoredChunk]:
        """Return up to *top_k* chunks relevant to *query_text*.

        ``top_k`` is clamped to ``[1, 50]``.

        Raises:
            EmptyQuery: If *query_text* is blank.
            StoreUnavailable: Only if both search paths found the store
                unreachable.
        """
        if not query_text or not query_text.strip():
            raise EmptyQuery()

        query = QueryContext(
            query_text=query_text.strip(),
            scope=SearchScope(tenant_id=tenant_id, category=category),
            requested_k=top_k if top_k is not None else self._default_top_k,
        )
        return await self.retrieve_query(query)

    async def retrieve_query(self, query: QueryContext) -> list[ScoredChunk]:
        vector_error: Exception | None = None
        try:
            embedding = await self._embedding_provider.embed_one(query.query_text)
            results = await self._document_store.vector_search(
                embedding, query.requested_k, query.scope
            )
        except Exception as exc:
            vector_error = exc
            logger.warning(
                "vector_search_failed",
                error=f"{exc.__class__.__name__}: {exc}",
                tenant_id=query.scope.tenant_id,
                category=query.scope.category,
            )
        else:
            if results:
                logger.info("vector_search_hit", results=len(results), top_k=query.requested_k)
                return results

        logger.info(
            "lexical_fallback",
            reason="error" if vector_error is not None else "no_vector_results",
            top_k=query.requested_k,
        )
        try:
            results = await self._document_store.lexical_search(
                query.query_text, query.requested_k, query.scope
            )
        except StoreUnavailable as exc:
            logger.warning("lexical_search_failed", error=str(exc))
            if isinstance(vector_error, StoreUnavailable):
                raise
            return []
        except Exception as exc:
            logger.warning("lexical_search_failed", error=f"{exc.__class__.__name__}: {exc}")
            return []

        logger.info("lexical_search_hit", results=len(results))
        return results
