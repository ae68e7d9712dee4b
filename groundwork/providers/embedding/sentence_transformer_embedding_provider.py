"""Local sentence-transformers embedding provider adapter.

Runs a small sentence-embedding model in-process; no API key, no network
after the first model download.  The default ``all-MiniLM-L6-v2`` produces
384-dimensional mean-pooled vectors, normalized by the library.
"""

from __future__ import annotations

import asyncio

import structlog

from groundwork.interfaces.embedding_provider import IEmbeddingProvider
from groundwork.utils.errors import EmbeddingProviderError
from groundwork.utils.vectors import l2_normalize

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
_BATCH_LIMIT = 64  # CPU inference batch


class SentenceTransformerEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a local sentence-transformers model.

    The model is loaded on first use.  ``dimension`` is the deployment's
    configured dimensionality; the model's own output size is checked
    against it when the model loads.
    """

    def __init__(
        self,
        model_name: str | None = None,
        dimension: int = 384,
        batch_size: int = _BATCH_LIMIT,
    ) -> None:
        self._model_name = model_name or _DEFAULT_MODEL
        self._dimension = dimension
        self._batch_size = batch_size
        self._model = None

    def _load_model(self):  # noqa: ANN202
        if self._model is not None:
            return self._model
        try:
            from sentence_transformers import SentenceTransformer

            logger.info("loading_sentence_transformer", model=self._model_name)
            model = SentenceTransformer(self._model_name)
        except Exception as exc:
            raise EmbeddingProviderError(
                message=f"Failed to load sentence-transformers model '{self._model_name}': {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        native = model.get_sentence_embedding_dimension()
        if native is not None and native != self._dimension:
            raise EmbeddingProviderError(
                message=(
                    f"Model '{self._model_name}' produces {native}-dimensional vectors "
                    f"but EMBEDDING_DIMENSION is {self._dimension}"
                ),
                provider_name=self.get_provider_name(),
            )
        logger.info("sentence_transformer_loaded", model=self._model_name, dimension=native)
        self._model = model
        return model

    def _encode_sync(self, texts: list[str]) -> list[list[float]]:
        model = self._load_model()
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start : start + self._batch_size]
            encoded = model.encode(batch, normalize_embeddings=True, show_progress_bar=False)
            vectors.extend(encoded.tolist())
        return vectors

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = await asyncio.to_thread(self._encode_sync, texts)
        except EmbeddingProviderError:
            raise
        except Exception as exc:
            raise EmbeddingProviderError(
                message=f"Sentence-transformers embedding error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        for vector in vectors:
            if len(vector) != self._dimension:
                raise EmbeddingProviderError(
                    message=f"Expected {self._dimension} dimensions, got {len(vector)}",
                    provider_name=self.get_provider_name(),
                )
        logger.debug("local_embedding_batch", model=self._model_name, count=len(texts))
        # Unit length whatever pooling the model was saved with.
        return l2_normalize(vectors)

    async def embed_one(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "sentence-transformers"

    def is_available(self) -> bool:
        """Return ``True`` if sentence-transformers is installed."""
        try:
            import sentence_transformers  # noqa: F401
            return True
        except ImportError:
            return False
