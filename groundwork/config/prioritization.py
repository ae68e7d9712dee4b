"""Keyword heuristics used to prioritize and label retrieved chunks.

The patterns are data, not logic: the defaults below reproduce the rules the
chat assistant has always shipped with, and ``config/config.yaml`` may replace
any of them under the ``prioritization`` key.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from groundwork.utils.errors import ConfigurationError

DEFAULT_CRITICAL_PATTERNS: tuple[str, ...] = (r"\b(cfr|f-?tag|must|shall)\b",)

DEFAULT_CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Federal Regulation", ("cfr", "cms")),
    ("Accreditation", ("joint commission",)),
    ("Public Health", ("cdc",)),
    ("Policy", ("policy", "procedure")),
    ("State Regulation", ("texas", "california", "florida", "new york", "illinois", "state")),
)

DEFAULT_LABEL = "General"


@dataclass(frozen=True)
class CategoryRule:
    label: str
    keywords: tuple[str, ...]

    def matches(self, lowered_text: str) -> bool:
        return any(keyword in lowered_text for keyword in self.keywords)


@dataclass(frozen=True)
class PrioritizationRules:
    """Compiled prioritization data.

    ``critical_patterns`` are matched case-insensitively against chunk
    content.  ``category_rules`` are tried in order against lower-cased text
    and the first match supplies the display label.
    """

    critical_patterns: tuple[re.Pattern[str], ...]
    category_rules: tuple[CategoryRule, ...] = field(default_factory=tuple)
    default_label: str = DEFAULT_LABEL

    def is_critical(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.critical_patterns)

    def label_for(self, text: str) -> str:
        lowered = text.lower()
        for rule in self.category_rules:
            if rule.matches(lowered):
                return rule.label
        return self.default_label

    @classmethod
    def defaults(cls) -> PrioritizationRules:
        return cls.from_config({})

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> PrioritizationRules:
        """Build rules from the ``prioritization`` section of the app config.

        Missing keys fall back to the module defaults.

        Raises:
            ConfigurationError: If a pattern does not compile or a rule is
                missing its label.
        """
        section = config.get("prioritization") or {}

        raw_patterns = section.get("critical_patterns") or list(DEFAULT_CRITICAL_PATTERNS)
        try:
            patterns = tuple(re.compile(p, re.IGNORECASE) for p in raw_patterns)
        except re.error as exc:
            raise ConfigurationError(message=f"Invalid critical pattern: {exc}") from exc

        raw_rules = section.get("category_rules")
        if raw_rules is None:
            rules = tuple(CategoryRule(label, keywords) for label, keywords in DEFAULT_CATEGORY_RULES)
        else:
            parsed: list[CategoryRule] = []
            for raw in raw_rules:
                label = (raw or {}).get("label")
                if not label:
                    raise ConfigurationError(message="Category rule is missing a label")
                keywords = tuple(str(k).lower() for k in raw.get("keywords") or ())
                parsed.append(CategoryRule(label, keywords))
            rules = tuple(parsed)

        return cls(
            critical_patterns=patterns,
            category_rules=rules,
            default_label=section.get("default_label") or DEFAULT_LABEL,
        )
