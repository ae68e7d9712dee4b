"""Embedding provider adapters and backend selection.

The backend is a tagged choice made once, at process start-up, from
``EMBEDDING_BACKEND``.  Services only ever see the
:class:`~groundwork.interfaces.embedding_provider.IEmbeddingProvider`
built here.
"""

from __future__ import annotations

from enum import Enum

from groundwork.config.settings import Settings
from groundwork.interfaces.embedding_provider import IEmbeddingProvider
from groundwork.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from groundwork.providers.embedding.sentence_transformer_embedding_provider import (
    SentenceTransformerEmbeddingProvider,
)
from groundwork.utils.errors import ConfigurationError


class EmbeddingBackend(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"

    @classmethod
    def parse(cls, value: str) -> EmbeddingBackend:
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            choices = ", ".join(member.value for member in cls)
            raise ConfigurationError(
                message=f"Unknown EMBEDDING_BACKEND '{value}' (expected one of: {choices})",
            ) from exc


def build_embedding_provider(settings: Settings) -> IEmbeddingProvider:
    """Construct the embedding provider selected by *settings*.

    Raises:
        ConfigurationError: For an unknown backend, or a remote backend
            without an API key.
    """
    backend = EmbeddingBackend.parse(settings.embedding_backend)

    if backend is EmbeddingBackend.REMOTE:
        if not settings.remote_embedding_api_key:
            raise ConfigurationError(
                message="EMBEDDING_BACKEND=remote requires REMOTE_EMBEDDING_API_KEY",
                provider_name="remote_embedding",
            )
        return OpenAIEmbeddingProvider(
            api_key=settings.remote_embedding_api_key,
            model=settings.remote_embedding_model,
            dimension=settings.embedding_dimension,
            base_url=settings.remote_embedding_base_url,
            timeout=settings.embedding_timeout,
        )

    return SentenceTransformerEmbeddingProvider(
        model_name=settings.local_embedding_model,
        dimension=settings.embedding_dimension,
        batch_size=settings.embedding_batch_size,
    )


__all__ = [
    "EmbeddingBackend",
    "OpenAIEmbeddingProvider",
    "SentenceTransformerEmbeddingProvider",
    "build_embedding_provider",
]
