"""Abstract base class for the chunk document store.

The store holds :class:`~groundwork.models.knowledge.DocumentChunk` rows and
answers two kinds of query:

* **vector search** -- rows ordered by cosine similarity to a query vector;
* **lexical search** -- rows ordered by the engine's native full-text
  relevance for a query string.

Both honour the same :class:`~groundwork.models.knowledge.SearchScope`
semantics: a tenant filter matches rows belonging to that tenant *or* global
rows (``tenant_id is None``); a category filter is an exact match.

Concrete implementations:
    SQLiteDocumentStore   -- aiosqlite + FTS5 (default, single file)
    ChromaDBDocumentStore -- chromadb persistent collection
Located in: groundwork/providers/store/
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from groundwork.models.knowledge import DocumentChunk, ScoredChunk, SearchScope


class IDocumentStore(ABC):
    """Contract for chunk storage and hybrid search.

    All query and mutation methods are async so network-backed stores do not
    block the event loop.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables / collections if they do not exist.

        Called once by the process entry point before serving.
        """

    @abstractmethod
    async def vector_search(
        self,
        embedding: list[float],
        top_k: int,
        scope: SearchScope | None = None,
    ) -> list[ScoredChunk]:
        """Return up to *top_k* rows ordered by descending cosine similarity.

        Parameters
        ----------
        embedding:
            Normalized query vector.
        top_k:
            Maximum number of rows.
        scope:
            Optional tenant/category filter.

        Returns
        -------
        list[ScoredChunk]
            Ranked results with ``match_type == "vector"``.

        Raises
        ------
        groundwork.utils.errors.StoreUnavailable
            If the store cannot be queried.
        """

    @abstractmethod
    async def lexical_search(
        self,
        query_text: str,
        top_k: int,
        scope: SearchScope | None = None,
    ) -> list[ScoredChunk]:
        """Return up to *top_k* rows ordered by full-text relevance.

        Raises
        ------
        groundwork.utils.errors.StoreUnavailable
            If the store cannot be queried.
        """

    @abstractmethod
    async def insert_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Persist *chunks* atomically: either every row is written or none.

        Returns
        -------
        int
            Number of rows written.

        Raises
        ------
        groundwork.utils.errors.StoreUnavailable
            If the write fails; nothing is persisted in that case.
        ValueError
            If any embedding disagrees in length with rows already stored
            or with the rest of the batch.
        """

    @abstractmethod
    async def count(self, scope: SearchScope | None = None) -> int:
        """Return the number of stored rows visible under *scope*."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"sqlite"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store has been initialized and is usable."""
