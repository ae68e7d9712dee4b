"""Source processor for word-processor documents (.docx).

Paragraph text comes first, then each table row with its cells joined by
``" | "`` so rows stay on one line.
"""

from __future__ import annotations

import io

import structlog
from docx import Document

from groundwork.utils.errors import ExtractionFailed

logger = structlog.get_logger(logger_name=__name__)


class DocxProcessor:
    """Extracts paragraphs and table rows from .docx uploads."""

    def extract(self, data: bytes, filename: str = "") -> str:
        try:
            doc = Document(io.BytesIO(data))
        except Exception as exc:
            raise ExtractionFailed(
                message=f"Could not open word-processor document: {exc}",
                provider_name="python-docx",
            ) from exc

        parts = [para.text for para in doc.paragraphs if para.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                row_text = " | ".join(cell.text.strip() for cell in row.cells)
                if row_text.replace("|", "").strip():
                    parts.append(row_text)

        logger.info(
            "docx_extracted",
            filename=filename,
            paragraphs=len(doc.paragraphs),
            tables=len(doc.tables),
        )
        return "\n\n".join(parts)
