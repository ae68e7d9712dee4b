"""Source processor for spreadsheets (.xlsx, .xlsm, .xls).

Every sheet is rendered under a ``=== Sheet: <name> ===`` header as CSV
rows, header row included, so row structure survives chunking.  Workbooks
are read with pandas (openpyxl engine for .xlsx/.xlsm).  Legacy .xls needs
the optional ``xlrd`` engine; without it extraction fails cleanly.
"""

from __future__ import annotations

import io

import pandas as pd
import structlog

from groundwork.utils.errors import ExtractionFailed

logger = structlog.get_logger(logger_name=__name__)


class SpreadsheetProcessor:
    """Renders every worksheet of a workbook as CSV text."""

    def extract(self, data: bytes, filename: str = "") -> str:
        try:
            sheets = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None, dtype=str)
        except ImportError as exc:
            raise ExtractionFailed(
                message=f"No spreadsheet engine installed for {filename or 'this file'}: {exc}",
                provider_name="pandas",
            ) from exc
        except Exception as exc:
            raise ExtractionFailed(
                message=f"Could not read spreadsheet: {exc}",
                provider_name="pandas",
            ) from exc

        sections: list[str] = []
        for sheet_name, frame in sheets.items():
            csv_text = frame.to_csv(index=False, header=False, lineterminator="\n")
            sections.append(f"=== Sheet: {sheet_name} ===\n{csv_text}")

        logger.info("spreadsheet_extracted", filename=filename, sheets=len(sheets))
        return "\n".join(sections).strip()
