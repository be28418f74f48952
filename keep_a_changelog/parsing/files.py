"""Registry of source files used to resolve diagnostic locations."""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field

from .base import FileId, Span


@dataclass(frozen=True, slots=True)
class Location:
    """1-based line and column (in characters) of a byte offset."""

    line: int
    column: int


@dataclass(slots=True)
class _SourceFile:
    name: str
    source: str
    encoded: bytes = field(init=False)
    line_starts: list[int] = field(init=False)

    def __post_init__(self) -> None:
        self.encoded = self.source.encode("utf-8")
        self.line_starts = [0]
        for index, byte in enumerate(self.encoded):
            if byte == 0x0A:
                self.line_starts.append(index + 1)


class SourceFiles:
    """Hold named sources and translate byte offsets into line/column locations."""

    def __init__(self) -> None:
        self._files: list[_SourceFile] = []

    def add(self, name: str, source: str) -> FileId:
        self._files.append(_SourceFile(name=name, source=source))
        return FileId(len(self._files) - 1)

    def name(self, file_id: FileId) -> str:
        return self._get(file_id).name

    def source(self, file_id: FileId) -> str:
        return self._get(file_id).source

    def source_span(self, file_id: FileId) -> Span:
        return Span(0, len(self._get(file_id).encoded))

    def slice(self, file_id: FileId, span: Span) -> str:
        """Return the source text covered by ``span``."""

        encoded = self._get(file_id).encoded
        return encoded[span.start:span.end].decode("utf-8", errors="replace")

    def line_index(self, file_id: FileId, byte_offset: int) -> int:
        """Return the 0-based line containing ``byte_offset``."""

        starts = self._get(file_id).line_starts
        return bisect.bisect_right(starts, byte_offset) - 1

    def line_text(self, file_id: FileId, line_index: int) -> str:
        entry = self._get(file_id)
        starts = entry.line_starts
        if line_index < 0 or line_index >= len(starts):
            raise IndexError(f"Line {line_index} out of range for '{entry.name}'")
        end = starts[line_index + 1] if line_index + 1 < len(starts) else len(entry.encoded)
        return entry.encoded[starts[line_index]:end].decode("utf-8", errors="replace").rstrip("\r\n")

    def location(self, file_id: FileId, byte_offset: int) -> Location:
        entry = self._get(file_id)
        offset = max(0, min(byte_offset, len(entry.encoded)))
        line = self.line_index(file_id, offset)
        prefix = entry.encoded[entry.line_starts[line]:offset].decode("utf-8", errors="replace")
        return Location(line=line + 1, column=len(prefix) + 1)

    def __len__(self) -> int:
        return len(self._files)

    def _get(self, file_id: FileId) -> _SourceFile:
        try:
            return self._files[file_id]
        except (IndexError, TypeError) as exc:
            raise KeyError(f"Unknown file id {file_id!r}") from exc
