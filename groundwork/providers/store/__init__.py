"""Document store adapters and backend selection."""

from __future__ import annotations

from enum import Enum

from groundwork.config.settings import Settings
from groundwork.interfaces.document_store import IDocumentStore
from groundwork.utils.errors import ConfigurationError


class StoreBackend(str, Enum):
    SQLITE = "sqlite"
    CHROMADB = "chromadb"


def build_document_store(settings: Settings) -> IDocumentStore:
    """Construct (but do not initialize) the store selected by ``STORE_BACKEND``."""
    try:
        backend = StoreBackend(settings.store_backend.strip().lower())
    except ValueError as exc:
        raise ConfigurationError(
            message=f"Unknown STORE_BACKEND '{settings.store_backend}' (expected sqlite or chromadb)",
        ) from exc

    if backend is StoreBackend.CHROMADB:
        # chromadb is heavy to import; only pay for it when selected.
        from groundwork.providers.store.chromadb_document_store import ChromaDBDocumentStore

        return ChromaDBDocumentStore(
            persist_directory=settings.chromadb_persist_dir,
            collection_name=settings.chromadb_collection,
            dimension=settings.embedding_dimension,
        )

    from groundwork.providers.store.sqlite_document_store import SQLiteDocumentStore

    return SQLiteDocumentStore(
        db_path=settings.sqlite_db_path,
        dimension=settings.embedding_dimension,
    )


__all__ = ["StoreBackend", "build_document_store"]
