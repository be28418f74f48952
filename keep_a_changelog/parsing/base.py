"""Core parsing primitives shared by every changelog component."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, NewType, Protocol

if TYPE_CHECKING:  # pragma: no cover - type checking aid
    from .diagnostics import Diagnostic

FileId = NewType("FileId", int)
"""Opaque handle into a :class:`~keep_a_changelog.parsing.files.SourceFiles` registry."""


class ParserError(RuntimeError):
    """Raised when a changelog component fails to process its input."""


class HeaderError(ParserError):
    """Raised when a release heading cannot be turned into a release."""

    def __init__(self, diagnostic: "Diagnostic") -> None:
        self.diagnostic = diagnostic
        super().__init__(diagnostic.message)


@dataclass(frozen=True, slots=True, order=True)
class Span:
    """Half-open ``[start, end)`` range of UTF-8 byte offsets into a source text."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid span [{self.start}, {self.end})")

    @classmethod
    def initial(cls) -> "Span":
        return cls(0, 0)

    @classmethod
    def from_str(cls, text: str) -> "Span":
        """Return the span covering every byte of ``text``."""
        return cls(0, len(text.encode("utf-8")))

    def merge(self, other: "Span") -> "Span":
        return Span(min(self.start, other.start), max(self.end, other.end))

    def is_empty(self) -> bool:
        return self.start == self.end

    def __len__(self) -> int:
        return self.end - self.start


class DiagnosticSink(Protocol):
    """Callback that receives recoverable parse problems in document order."""

    def __call__(self, diagnostic: "Diagnostic") -> None:
        ...
