"""OpenAI-compatible remote embedding provider adapter.

Wraps the ``openai`` async client pointed at any OpenAI-compatible
``/embeddings`` endpoint.  The default deployment targets OpenRouter with
``openai/text-embedding-3-small``.  For ``text-embedding-3`` models the
configured dimensionality is requested from the provider, so a remote
deployment can match a local one without re-embedding.
"""

from __future__ import annotations

from typing import Any

import openai
import structlog

from groundwork.interfaces.embedding_provider import IEmbeddingProvider
from groundwork.utils.errors import EmbeddingProviderError
from groundwork.utils.vectors import l2_normalize

logger = structlog.get_logger(logger_name=__name__)

_REQUEST_BATCH_LIMIT = 2048
_BODY_PREVIEW_CHARS = 500


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by a remote embeddings API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        dimension: int,
        base_url: str | None = None,
        timeout: float = 30.0,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._dimension = dimension

        client_kwargs: dict[str, Any] = {"api_key": api_key or "unset", "timeout": timeout}
        if base_url:
            client_kwargs["base_url"] = base_url
        self._client = client or openai.AsyncOpenAI(**client_kwargs)

    def _supports_dimensions(self) -> bool:
        return "text-embedding-3" in self._model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, one request per 2048 inputs.

        Raises:
            EmbeddingProviderError: On any non-2xx response (with
                ``status_code`` and the first 500 characters of the body),
                on connection failure, or on a dimensionality mismatch.
        """
        if not texts:
            return []

        request_kwargs: dict[str, Any] = {"model": self._model}
        if self._supports_dimensions():
            request_kwargs["dimensions"] = self._dimension

        vectors: list[list[float]] = []
        for start in range(0, len(texts), _REQUEST_BATCH_LIMIT):
            batch = texts[start : start + _REQUEST_BATCH_LIMIT]
            try:
                response = await self._client.embeddings.create(input=batch, **request_kwargs)
            except openai.APIStatusError as exc:
                body = exc.response.text if exc.response is not None else str(exc)
                raise EmbeddingProviderError(
                    message=f"Embedding request failed with status {exc.status_code}",
                    provider_name=self.get_provider_name(),
                    status_code=exc.status_code,
                    body=body[:_BODY_PREVIEW_CHARS],
                ) from exc
            except openai.APIError as exc:
                raise EmbeddingProviderError(
                    message=f"Embedding request failed: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

            items = sorted(response.data, key=lambda item: item.index)
            if len(items) != len(batch):
                raise EmbeddingProviderError(
                    message=f"Expected {len(batch)} embeddings, got {len(items)}",
                    provider_name=self.get_provider_name(),
                )
            vectors.extend(item.embedding for item in items)
            logger.info(
                "remote_embedding_batch",
                model=self._model,
                batch_size=len(batch),
                tokens=response.usage.total_tokens if response.usage else None,
            )

        for vector in vectors:
            if len(vector) != self._dimension:
                raise EmbeddingProviderError(
                    message=f"Expected {self._dimension} dimensions, got {len(vector)}",
                    provider_name=self.get_provider_name(),
                )
        return l2_normalize(vectors)

    async def embed_one(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "remote_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
