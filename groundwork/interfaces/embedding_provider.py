"""Abstract base class for text-embedding providers.

Two concrete backends ship with groundwork:

* :class:`~groundwork.providers.embedding.sentence_transformer_embedding_provider.SentenceTransformerEmbeddingProvider`
  -- a small sentence-embedding model run in-process.
* :class:`~groundwork.providers.embedding.openai_embedding_provider.OpenAIEmbeddingProvider`
  -- any OpenAI-compatible ``/embeddings`` endpoint (OpenRouter by default).

The backend is chosen once at start-up (see
:func:`~groundwork.providers.embedding.build_embedding_provider`); ingestion
and retrieval share the same instance so that stored vectors and query
vectors live in the same space.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IEmbeddingProvider(ABC):
    """Contract for embedding services used by ingestion and retrieval.

    Every vector returned by :meth:`embed` and :meth:`embed_one` is
    L2-normalized and has exactly :meth:`get_dimension` components.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Texts to embed.  Ingestion passes every chunk of a batch in a
            single call; implementations split into sub-batches internally
            if the backend has a per-request limit.

        Returns
        -------
        list[list[float]]
            One normalized vector per input, in input order.

        Raises
        ------
        groundwork.utils.errors.EmbeddingProviderError
            If the backend fails or returns vectors of the wrong size.
        """

    @abstractmethod
    async def embed_one(self, text: str) -> list[float]:
        """Embed a single text (typically a search query).

        Must agree with ``(await embed([text]))[0]`` in length.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the fixed dimensionality of produced vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"sentence-transformers"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Must not perform a network call or generate an embedding.
        """
