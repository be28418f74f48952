"""Structured diagnostics reported while parsing a changelog."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator

from .base import FileId, Span
from .files import SourceFiles


class Severity(IntEnum):
    """Diagnostic severities, ordered from least to most severe."""

    HELP = 1
    NOTE = 2
    WARNING = 3
    ERROR = 4
    BUG = 5

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: str) -> "Severity":
        try:
            return cls[value.strip().upper()]
        except KeyError as exc:
            choices = ", ".join(member.label for member in cls)
            raise ValueError(f"Unknown severity '{value}' (expected one of: {choices})") from exc


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A localized, non-fatal problem found in a source file."""

    severity: Severity
    message: str
    file_id: FileId
    span: Span
    label: str | None = None
    notes: tuple[str, ...] = ()

    @classmethod
    def error(
        cls,
        message: str,
        *,
        file_id: FileId,
        span: Span,
        label: str | None = None,
        notes: tuple[str, ...] = (),
    ) -> "Diagnostic":
        return cls(Severity.ERROR, message, file_id, span, label, notes)


class Diagnostics:
    """Collecting sink; pass an instance wherever a diagnostic callback is expected."""

    def __init__(self) -> None:
        self._diagnostics: list[Diagnostic] = []

    def __call__(self, diagnostic: Diagnostic) -> None:
        self._diagnostics.append(diagnostic)

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        return tuple(self._diagnostics)

    def contains_at_least(self, severity: Severity) -> bool:
        return any(diagnostic.severity >= severity for diagnostic in self._diagnostics)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._diagnostics)

    def __len__(self) -> int:
        return len(self._diagnostics)

    def __bool__(self) -> bool:
        return bool(self._diagnostics)


def render_diagnostic(diagnostic: Diagnostic, files: SourceFiles) -> str:
    """Render a diagnostic with a caret under the offending source text."""

    file_id = diagnostic.file_id
    location = files.location(file_id, diagnostic.span.start)
    line_number = location.line
    gutter = " " * len(str(line_number))
    line_text = files.line_text(file_id, line_number - 1)

    end_location = files.location(file_id, diagnostic.span.end)
    if end_location.line == line_number:
        width = max(1, end_location.column - location.column)
    else:
        width = max(1, len(line_text) - location.column + 1)
    marker = " " * (location.column - 1) + "^" * width
    if diagnostic.label:
        marker = f"{marker} {diagnostic.label}"

    lines = [
        f"{diagnostic.severity.label}: {diagnostic.message}",
        f"{gutter}--> {files.name(file_id)}:{line_number}:{location.column}",
        f"{gutter} |",
        f"{line_number} | {line_text}",
        f"{gutter} | {marker}",
    ]
    for note in diagnostic.notes:
        lines.append(f"{gutter} = note: {note}")
    return "\n".join(lines)
