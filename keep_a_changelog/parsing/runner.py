"""High-level orchestration for parsing changelog files."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, Sequence

from . import utils
from .diagnostics import Diagnostic, Diagnostics, Severity
from .events import DEFAULT_EXTENSIONS
from .files import SourceFiles
from .models import Changelog
from .parser import parse

logger = logging.getLogger(__name__)

_DEFAULT_SCAN_SUFFIXES = (".md", ".markdown")


@dataclass(slots=True)
class ParseOutcome:
    source: str
    status: str
    changelog: Changelog | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


def parse_changelog_file(
    path: str | Path,
    *,
    files: SourceFiles,
    fail_on: Severity = Severity.ERROR,
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
) -> ParseOutcome:
    """Read and parse one changelog, collecting its diagnostics.

    The outcome is ``failed`` when any diagnostic reaches ``fail_on`` and
    ``error`` when the file cannot be read at all.
    """

    resolved = Path(path).expanduser().resolve(strict=False)
    source_name = str(resolved)

    try:
        source = resolved.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Unable to read changelog '%s': %s", source_name, exc)
        return ParseOutcome(source=source_name, status="error", error=str(exc))

    file_id = files.add(source_name, source)
    collected = Diagnostics()
    changelog = parse(file_id, source, collected, extensions=extensions)

    status = "failed" if collected.contains_at_least(fail_on) else "completed"
    logger.info(
        "Parsed '%s': %d release(s), %d diagnostic(s)",
        source_name,
        len(changelog.releases),
        len(collected),
    )
    return ParseOutcome(
        source=source_name,
        status=status,
        changelog=changelog,
        diagnostics=list(collected),
    )


def scan_changelogs(
    root: str | Path,
    *,
    files: SourceFiles,
    suffixes: Sequence[str] | None = None,
    recursive: bool = True,
    limit: int | None = None,
    include_patterns: Sequence[str] | None = None,
    exclude_patterns: Sequence[str] | None = None,
    fail_on: Severity = Severity.ERROR,
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
) -> list[ParseOutcome]:
    candidates = collect_changelog_candidates(
        root,
        suffixes=suffixes,
        recursive=recursive,
        include_patterns=include_patterns,
        exclude_patterns=exclude_patterns,
    )
    if limit is not None and limit >= 0:
        candidates = candidates[:limit]

    return [
        parse_changelog_file(candidate, files=files, fail_on=fail_on, extensions=extensions)
        for candidate in candidates
    ]


def collect_changelog_candidates(
    root: str | Path,
    *,
    suffixes: Sequence[str] | None = None,
    recursive: bool = True,
    include_patterns: Sequence[str] | None = None,
    exclude_patterns: Sequence[str] | None = None,
) -> list[Path]:
    """Return candidate paths that match the scan filters without parsing them.

    Include and exclude patterns are matched case-insensitively against the
    path relative to ``root``.
    """

    root_path = Path(root).expanduser().resolve()
    if not root_path.exists():
        raise FileNotFoundError(f"Scan root '{root_path}' does not exist")

    normalized_suffixes = utils.normalize_suffixes(suffixes, default=_DEFAULT_SCAN_SUFFIXES)

    if recursive:
        iterator: Iterable[Path] = root_path.rglob("*")
    else:
        iterator = root_path.iterdir()

    include = tuple(pattern.lower() for pattern in include_patterns or ())
    exclude = tuple(pattern.lower() for pattern in exclude_patterns or ())

    candidates: list[Path] = []
    for path in iterator:
        if not path.is_file():
            continue
        if path.suffix.lower() not in normalized_suffixes:
            continue
        resolved = path.resolve()
        rel_posix = resolved.relative_to(root_path).as_posix().lower()
        if include and not any(fnmatch(rel_posix, pattern) for pattern in include):
            continue
        if exclude and any(fnmatch(rel_posix, pattern) for pattern in exclude):
            continue
        candidates.append(resolved)

    candidates.sort()
    return candidates


__all__ = [
    "ParseOutcome",
    "parse_changelog_file",
    "scan_changelogs",
    "collect_changelog_candidates",
]
