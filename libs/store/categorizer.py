"""
Keyword-based categorizer and canned-answer templates.

Assigns each question one category from a static keyword table:
  - every category scores the number of its keywords found as substrings
  - the strictly highest score wins; ties keep the earlier category
  - no match at all falls back to ``general``

Tags and template answers are derived from the same table. Nothing here
learns or calls out to a model; results depend only on the table and input.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from libs.core.models import DEFAULT_CATEGORY

from .data import load_yaml

MAX_WORD_TAGS = 5
MAX_KEYWORD_TAGS = 3
MIN_WORD_LENGTH = 4
DEFAULT_TEMPLATE = "default"

_NON_WORD = re.compile(r"[^\w\s]")


class Categorizer:
    """Pure functions of a keyword table and a template table."""

    def __init__(
        self,
        keywords: Mapping[str, Sequence[str]],
        templates: Optional[Mapping[str, str]] = None,
        default_category: str = DEFAULT_CATEGORY,
    ) -> None:
        self.keywords: Dict[str, List[str]] = {
            str(cat): [str(k).lower() for k in kws] for cat, kws in keywords.items()
        }
        self.templates: Dict[str, str] = dict(templates or {})
        self.default_category = default_category

    @classmethod
    def from_yaml(cls, base_dir: Path | None = None, name: str = "categories") -> "Categorizer":
        data = load_yaml(name, base_dir)
        return cls(data.get("keywords") or {}, data.get("templates") or {})

    @classmethod
    def default(cls) -> "Categorizer":
        return _default_categorizer()

    # ------------------------------------------------------------------
    def categorize(self, text: str) -> str:
        lowered = text.lower()
        best_category = self.default_category
        max_matches = 0
        for category, keywords in self.keywords.items():
            matches = sum(1 for kw in keywords if kw in lowered)
            if matches > max_matches:
                max_matches = matches
                best_category = category
        return best_category

    def generate_tags(self, text: str, category: str) -> List[str]:
        lowered = text.lower()
        words = [w for w in _NON_WORD.sub(" ", lowered).split() if len(w) >= MIN_WORD_LENGTH]
        relevant = [kw for kw in self.keywords.get(category, []) if kw in lowered]
        tags = [category, *relevant[:MAX_KEYWORD_TAGS], *words[:MAX_WORD_TAGS]]
        return list(dict.fromkeys(tags))

    def generate_answer(self, question: str, category: str) -> str:
        template = self.templates.get(category) or self.templates.get(DEFAULT_TEMPLATE, "{question}")
        return template.replace("{question}", question)


@lru_cache
def _default_categorizer() -> Categorizer:
    return Categorizer.from_yaml()


__all__ = ["Categorizer"]
