"""Source processor for PDF documents.

Reads PDF bytes with PyMuPDF (fitz) and joins the text of every page that
has any, separated by a blank line.  Scanned PDFs without a text layer
produce an empty string, which the ingestor reports as
``NoExtractableText``.
"""

from __future__ import annotations

import fitz  # PyMuPDF
import structlog

from groundwork.utils.errors import ExtractionFailed

logger = structlog.get_logger(logger_name=__name__)


class PDFProcessor:
    """Extracts page text from PDF uploads."""

    def extract(self, data: bytes, filename: str = "") -> str:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionFailed(
                message=f"Could not open PDF: {exc}",
                provider_name="pymupdf",
            ) from exc

        pages: list[str] = []
        try:
            for page in doc:
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
            page_count = len(doc)
        except Exception as exc:
            raise ExtractionFailed(
                message=f"Could not read PDF text: {exc}",
                provider_name="pymupdf",
            ) from exc
        finally:
            doc.close()

        if not pages:
            logger.warning("pdf_no_text_extracted", filename=filename, pages=page_count)
        else:
            logger.info("pdf_extracted", filename=filename, pages=page_count, text_pages=len(pages))
        return "\n\n".join(pages)
