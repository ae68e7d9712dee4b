"""Context assembly: turn retrieved chunks into a citation-numbered text block.

Each chunk is rendered as::

    (1) [category] Title [source](https://example.org/doc)
    First 800 characters of the content, whitespace collapsed ...

Entries are separated by a blank line under a fixed header.  Entries are
added in order until the next one would push the block past the character
budget; ``used_chunks[i]`` is always the chunk cited as ``(i + 1)``.  An
empty input produces an empty string, which callers treat as "omit the
context block".

Prioritization is a stable four-way partition (critical, role, facility,
general) driven by :class:`~groundwork.config.prioritization.PrioritizationRules`.
Relative order within a bucket is never changed.
"""

from __future__ import annotations

import structlog

from groundwork.config.prioritization import PrioritizationRules
from groundwork.models.knowledge import (
    AssembledContext,
    CallerProfile,
    DocumentChunk,
    PrioritizedResult,
    PriorityBucket,
    ScoredChunk,
)
from groundwork.utils.text_normalizer import collapse_whitespace

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_HEADER = "### Context (retrieved knowledge — cite by number if used)"
DEFAULT_SNIPPET_CHARS = 800
DEFAULT_CHAR_BUDGET = 12000
ELLIPSIS = " ..."
FALLBACK_CATEGORY = "general"
_SEPARATOR = "\n\n"

_BUCKET_ORDER = (
    PriorityBucket.CRITICAL,
    PriorityBucket.ROLE,
    PriorityBucket.FACILITY,
    PriorityBucket.GENERAL,
)


def make_snippet(content: str, limit: int = DEFAULT_SNIPPET_CHARS) -> str:
    """First *limit* characters of *content*, whitespace collapsed.

    ``" ..."`` is appended when the content was longer than *limit*.
    """
    snippet = collapse_whitespace(content[:limit])
    if len(content) > limit:
        snippet += ELLIPSIS
    return snippet


class ContextAssembler:
    """Formats and prioritizes retrieved chunks.

    Parameters
    ----------
    rules:
        Keyword heuristics for the critical bucket and display labels.
    snippet_chars:
        Maximum content characters rendered per entry.
    char_budget:
        Maximum length of the assembled block, header included.
    header:
        First line of every non-empty block.
    """

    def __init__(
        self,
        rules: PrioritizationRules | None = None,
        snippet_chars: int = DEFAULT_SNIPPET_CHARS,
        char_budget: int = DEFAULT_CHAR_BUDGET,
        header: str = DEFAULT_HEADER,
    ) -> None:
        self._rules = rules or PrioritizationRules.defaults()
        self._snippet_chars = snippet_chars
        self._char_budget = char_budget
        self._header = header

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def format_entry(self, number: int, chunk: DocumentChunk) -> str:
        source = f" [source]({chunk.source_url})" if chunk.source_url else ""
        category = chunk.category or FALLBACK_CATEGORY
        snippet = make_snippet(chunk.content, self._snippet_chars)
        return f"({number}) [{category}] {chunk.title}{source}\n{snippet}"

    def assemble(
        self,
        scored_chunks: list[ScoredChunk],
        profile: CallerProfile | None = None,
    ) -> AssembledContext:
        """Render *scored_chunks* into a bounded context block.

        When *profile* is given the chunks are prioritized first.
        """
        if not scored_chunks:
            return AssembledContext()

        ordered = scored_chunks
        if profile is not None:
            ordered = [item.scored for item in self.prioritize(scored_chunks, profile)]

        text = self._header
        used: list[ScoredChunk] = []
        for scored in ordered:
            entry = self.format_entry(len(used) + 1, scored.chunk)
            candidate = f"{text}{_SEPARATOR}{entry}"
            if len(candidate) > self._char_budget:
                logger.debug(
                    "context_budget_reached",
                    used=len(used),
                    dropped=len(ordered) - len(used),
                    budget=self._char_budget,
                )
                break
            text = candidate
            used.append(scored)

        if not used:
            return AssembledContext()

        logger.debug("context_assembled", entries=len(used), chars=len(text))
        return AssembledContext(text=text, used_chunks=used)

    # ------------------------------------------------------------------
    # Prioritization
    # ------------------------------------------------------------------

    def bucket_for(self, chunk: DocumentChunk, profile: CallerProfile | None) -> PriorityBucket:
        content = chunk.content
        if self._rules.is_critical(content):
            return PriorityBucket.CRITICAL
        if profile is not None and profile.role and profile.role.lower() in content.lower():
            return PriorityBucket.ROLE
        # Facility names are matched case-sensitively.
        if profile is not None and profile.facility_name and profile.facility_name in content:
            return PriorityBucket.FACILITY
        return PriorityBucket.GENERAL

    def category_label(self, chunk: DocumentChunk) -> str:
        """Display label derived from title, category and content keywords."""
        return self._rules.label_for(f"{chunk.title} {chunk.category or ''} {chunk.content}")

    def prioritize(
        self,
        scored_chunks: list[ScoredChunk],
        profile: CallerProfile | None = None,
        limit: int | None = None,
    ) -> list[PrioritizedResult]:
        """Stable-partition *scored_chunks* into priority buckets.

        Returns the buckets concatenated (critical, role, facility,
        general), truncated to *limit* when given.
        """
        buckets: dict[PriorityBucket, list[PrioritizedResult]] = {b: [] for b in _BUCKET_ORDER}
        for scored in scored_chunks:
            bucket = self.bucket_for(scored.chunk, profile)
            buckets[bucket].append(
                PrioritizedResult(
                    scored=scored,
                    bucket=bucket,
                    category_label=self.category_label(scored.chunk),
                )
            )

        ordered = [item for bucket in _BUCKET_ORDER for item in buckets[bucket]]
        if limit is not None:
            ordered = ordered[: max(0, limit)]

        logger.debug(
            "results_prioritized",
            **{f"{b.value}_count": len(buckets[b]) for b in _BUCKET_ORDER},
            returned=len(ordered),
        )
        return ordered
