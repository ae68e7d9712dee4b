"""Ingestion pipeline: extract -> chunk -> embed -> store."""

from groundwork.services.ingestion.chunker import TextChunker, chunk_text
from groundwork.services.ingestion.extractor import TextExtractor
from groundwork.services.ingestion.ingestion_service import IngestionService

__all__ = ["IngestionService", "TextChunker", "TextExtractor", "chunk_text"]
