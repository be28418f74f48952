"""Utility helpers shared across parsing components."""

from __future__ import annotations

import re
from collections.abc import Sequence

from .base import Span

_NEWLINE_PATTERN = re.compile("\n")
_INDENT = " \t"
_TRAILING = " \t\r\n"


class SourceText:
    """Map character positions in a source string onto UTF-8 byte spans.

    Markdown tokens only report line numbers, so the event normalizer works in
    character offsets and converts to byte offsets at the boundary.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self._line_starts = [0] + [match.end() for match in _NEWLINE_PATTERN.finditer(text)]
        if text.isascii():
            self._byte_offsets: list[int] | None = None
        else:
            offsets = [0]
            total = 0
            for char in text:
                total += len(char.encode("utf-8"))
                offsets.append(total)
            self._byte_offsets = offsets

    def __len__(self) -> int:
        return len(self.text)

    def byte_offset(self, index: int) -> int:
        index = max(0, min(index, len(self.text)))
        if self._byte_offsets is None:
            return index
        return self._byte_offsets[index]

    def span(self, start: int, end: int) -> Span:
        start_byte = self.byte_offset(start)
        return Span(start_byte, max(start_byte, self.byte_offset(end)))

    def line_range(self, first_line: int, last_line: int) -> tuple[int, int]:
        """Return character bounds for lines ``[first_line, last_line)``.

        Leading indentation and trailing whitespace are excluded so block spans
        start at their marker and end at their last visible character.
        """

        count = len(self._line_starts)
        if first_line >= count:
            return len(self.text), len(self.text)
        start = self._line_starts[first_line]
        end = self._line_starts[last_line] if last_line < count else len(self.text)
        while start < end and self.text[start] in _INDENT:
            start += 1
        while end > start and self.text[end - 1] in _TRAILING:
            end -= 1
        return start, end

    def find(self, needle: str, start: int, end: int) -> int:
        if not needle:
            return -1
        return self.text.find(needle, start, end)


def normalize_suffixes(
    values: Sequence[str] | str | None,
    *,
    default: Sequence[str] | None = None,
) -> tuple[str, ...]:
    """Normalize file suffix tokens to lowercase dotted form, keeping first-seen order."""

    if not values:
        cleaned: list[str] = []
    else:
        iterator = [values] if isinstance(values, str) else values
        cleaned = []
        for raw in iterator:
            token = str(raw).strip().lower()
            if not token:
                continue
            if not token.startswith("."):
                token = f".{token}"
            cleaned.append(token)

    if not cleaned:
        return tuple(default) if default is not None else ()

    return tuple(dict.fromkeys(cleaned))


def normalize_patterns(values: object) -> tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        values = [values]
    patterns: list[str] = []
    for raw in values:  # type: ignore[union-attr]
        token = str(raw).strip()
        if token:
            patterns.append(token)
    return tuple(dict.fromkeys(patterns))
