"""Classification of release section headings into change categories."""

from __future__ import annotations

from enum import Enum


class Category(Enum):
    """Change categories tracked for each release."""

    ADDED = "added"
    CHANGED = "changed"
    FIXED = "fixed"


_VOCABULARY: dict[str, Category] = {category.value: category for category in Category}


def classify_section(text: str) -> Category | None:
    """Map a section heading's text to a category, or ``None`` when unrecognized."""

    return _VOCABULARY.get(text.strip().casefold())
