"""Dispatch raw uploads to the matching source processor.

The file extension decides; when the filename has no recognised extension
the declared MIME type is tried.  Anything else is rejected with
:class:`~groundwork.utils.errors.UnsupportedFormat`.  Parser failures
surface as :class:`~groundwork.utils.errors.ExtractionFailed` and never
escape as raw library exceptions.
"""

from __future__ import annotations

from pathlib import PurePath
from typing import Protocol

import structlog

from groundwork.services.ingestion.source_processors import (
    DelimitedTextProcessor,
    DocxProcessor,
    PDFProcessor,
    SpreadsheetProcessor,
    TextProcessor,
)
from groundwork.utils.errors import ExtractionFailed, GroundworkError, UnsupportedFormat

logger = structlog.get_logger(logger_name=__name__)


class SourceProcessor(Protocol):
    def extract(self, data: bytes, filename: str = "") -> str: ...


_MIME_TO_EXTENSION: dict[str, str] = {
    "text/plain": ".txt",
    "text/markdown": ".md",
    "text/x-markdown": ".md",
    "text/csv": ".csv",
    "text/tab-separated-values": ".tsv",
    "application/pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/vnd.ms-excel.sheet.macroenabled.12": ".xlsm",
    "application/vnd.ms-excel": ".xls",
}


class TextExtractor:
    """Converts uploaded bytes into UTF-8 text by format."""

    def __init__(self) -> None:
        text = TextProcessor()
        delimited = DelimitedTextProcessor()
        spreadsheet = SpreadsheetProcessor()
        docx = DocxProcessor()
        self._handlers: dict[str, SourceProcessor] = {
            ".txt": text,
            ".text": text,
            ".md": text,
            ".markdown": text,
            ".csv": delimited,
            ".tsv": delimited,
            ".pdf": PDFProcessor(),
            ".docx": docx,
            # python-docx cannot read legacy .doc; it fails as ExtractionFailed.
            ".doc": docx,
            ".xlsx": spreadsheet,
            ".xlsm": spreadsheet,
            ".xls": spreadsheet,
        }

    @property
    def supported_extensions(self) -> list[str]:
        return sorted(self._handlers)

    def resolve_extension(self, filename: str, content_type: str | None = None) -> str:
        """Return the handler key for an upload.

        Raises:
            UnsupportedFormat: If neither extension nor MIME type is known.
        """
        extension = PurePath(filename).suffix.lower()
        if extension in self._handlers:
            return extension

        mime = (content_type or "").split(";", 1)[0].strip().lower()
        mapped = _MIME_TO_EXTENSION.get(mime)
        if mapped is not None:
            return mapped

        raise UnsupportedFormat(extension or mime)

    def extract(self, data: bytes, filename: str, content_type: str | None = None) -> str:
        """Extract text from *data*.

        Args:
            data: Raw upload bytes.
            filename: Original filename, used for dispatch and logging.
            content_type: Declared MIME type, consulted only when the
                extension is missing or unknown.

        Returns:
            Extracted text, not yet normalized.  May be blank.

        Raises:
            UnsupportedFormat: No handler for the file type.
            ExtractionFailed: The handler could not parse the file.
        """
        extension = self.resolve_extension(filename, content_type)
        handler = self._handlers[extension]
        try:
            text = handler.extract(data, filename)
        except GroundworkError:
            raise
        except Exception as exc:
            raise ExtractionFailed(message=f"{extension} extraction failed: {exc}") from exc

        logger.info("text_extracted", filename=filename, extension=extension, chars=len(text))
        return text
