"""Abstract interfaces for groundwork's external collaborators."""

from groundwork.interfaces.completion_provider import CompletionStream, ICompletionProvider
from groundwork.interfaces.document_store import IDocumentStore
from groundwork.interfaces.embedding_provider import IEmbeddingProvider

__all__ = [
    "CompletionStream",
    "ICompletionProvider",
    "IDocumentStore",
    "IEmbeddingProvider",
]
