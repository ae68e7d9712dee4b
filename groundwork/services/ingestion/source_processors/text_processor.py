"""Source processors for plain-text formats (.txt, .md, .csv, .tsv).

Plain text is decoded as UTF-8 (a leading BOM is dropped, undecodable bytes
become U+FFFD).  Delimited files keep their rows verbatim under a
``CSV Data:`` heading so the model sees that what follows is tabular.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(logger_name=__name__)


def decode_utf8(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


class TextProcessor:
    """Decodes plain-text and Markdown uploads."""

    def extract(self, data: bytes, filename: str = "") -> str:
        text = decode_utf8(data)
        logger.debug("text_extracted", filename=filename, chars=len(text))
        return text


class DelimitedTextProcessor:
    """Decodes CSV/TSV uploads, preserving one line per row."""

    heading = "CSV Data:"

    def extract(self, data: bytes, filename: str = "") -> str:
        text = decode_utf8(data)
        if not text.strip():
            return ""
        logger.debug("delimited_text_extracted", filename=filename, rows=text.count("\n") + 1)
        return f"{self.heading}\n{text}"
