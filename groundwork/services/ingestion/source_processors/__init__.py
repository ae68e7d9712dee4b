"""Source processors for the groundwork ingestion pipeline.

Each processor turns the raw bytes of one upload format into UTF-8 text:

- **TextProcessor**           -- .txt / .md
- **DelimitedTextProcessor**  -- .csv / .tsv, rows kept verbatim
- **PDFProcessor**            -- .pdf via PyMuPDF
- **DocxProcessor**           -- .docx via python-docx (paragraphs + tables)
- **SpreadsheetProcessor**    -- .xlsx / .xlsm / .xls via pandas, one CSV block per sheet

:class:`~groundwork.services.ingestion.extractor.TextExtractor` picks the
processor by extension, falling back to MIME type.
"""

from groundwork.services.ingestion.source_processors.docx_processor import DocxProcessor
from groundwork.services.ingestion.source_processors.pdf_processor import PDFProcessor
from groundwork.services.ingestion.source_processors.spreadsheet_processor import (
    SpreadsheetProcessor,
)
from groundwork.services.ingestion.source_processors.text_processor import (
    DelimitedTextProcessor,
    TextProcessor,
)

__all__ = [
    "DelimitedTextProcessor",
    "DocxProcessor",
    "PDFProcessor",
    "SpreadsheetProcessor",
    "TextProcessor",
]
