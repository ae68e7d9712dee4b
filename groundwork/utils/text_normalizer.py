"""Text normalization shared by ingestion and context assembly.

Two distinct concerns live here:

1. **Document normalization** (:func:`normalize_document_text`) -- applied to
   every extracted document before chunking so that chunk offsets are
   computed over a canonical form.  Line endings are unified, NUL bytes
   dropped, trailing horizontal whitespace removed, and runs of three or more
   newlines collapsed to one blank line.  The function is idempotent.

2. **Snippet normalization** (:func:`collapse_whitespace`) -- applied to chunk
   content when it is rendered into a context block, where every whitespace
   run (including newlines) becomes a single space.
"""

from __future__ import annotations

import re

_TRAILING_HSPACE = re.compile(r"[ \t]+\n")
_BLANK_LINE_RUN = re.compile(r"\n{3,}")
_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_document_text(text: str) -> str:
    """Return *text* in the canonical form used for chunking.

    Args:
        text: Raw extracted text.

    Returns:
        Normalized text, stripped of leading and trailing whitespace.
    """
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    normalized = normalized.replace("\x00", "")
    normalized = _TRAILING_HSPACE.sub("\n", normalized)
    normalized = _BLANK_LINE_RUN.sub("\n\n", normalized)
    return normalized.strip()


def collapse_whitespace(text: str) -> str:
    """Collapse every whitespace run to one space and strip the ends."""
    return _WHITESPACE_RUN.sub(" ", text).strip()
