"""Profile-aware search: retrieve, prioritize, label, assemble.

The context block is assembled from the prioritized list, so citation
``(n)`` in ``SmartSearchResult.context.text`` refers to ``results[n - 1]``.
"""

from __future__ import annotations

import structlog

from groundwork.models.knowledge import CallerProfile, SmartSearchResult
from groundwork.services.context_assembler import ContextAssembler
from groundwork.services.retrieval_service import RetrievalService

logger = structlog.get_logger(logger_name=__name__)


class SmartSearchService:
    def __init__(
        self,
        retrieval_service: RetrievalService,
        context_assembler: ContextAssembler,
        default_top_k: int = 8,
        result_limit: int = 10,
    ) -> None:
        self._retrieval = retrieval_service
        self._assembler = context_assembler
        self._default_top_k = default_top_k
        self._result_limit = result_limit

    async def search(
        self,
        query_text: str,
        profile: CallerProfile | None = None,
        tenant_id: str | None = None,
        category: str | None = None,
        top_k: int | None = None,
    ) -> SmartSearchResult:
        """Retrieve up to *top_k* chunks (default 8) and prioritize them.

        Raises:
            EmptyQuery: If *query_text* is blank.
        """
        scored = await self._retrieval.retrieve(
            query_text,
            tenant_id=tenant_id,
            category=category,
            top_k=top_k or self._default_top_k,
        )
        prioritized = self._assembler.prioritize(scored, profile, limit=self._result_limit)
        context = self._assembler.assemble([item.scored for item in prioritized])

        logger.info(
            "smart_search_complete",
            retrieved=len(scored),
            returned=len(prioritized),
            has_profile=profile is not None,
        )
        return SmartSearchResult(results=prioritized, context=context)
