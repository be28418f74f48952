"""Immutable changelog model produced by the parser."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from semver import Version

from .base import Span
from .events import Event, EventKind, TagKind
from .sections import Category

_INLINE_TEXT_KINDS = (EventKind.TEXT, EventKind.CODE)
_BREAK_KINDS = (EventKind.SOFT_BREAK, EventKind.HARD_BREAK)


@dataclass(frozen=True, slots=True)
class Item:
    """A single list entry under a change category."""

    body: tuple[Event, ...]
    span: Span
    children: tuple["Item", ...] = ()

    def text(self) -> str:
        """Render the item's own body (not its children) as plain text."""

        parts: list[str] = []
        for event in self.body:
            if event.kind in _INLINE_TEXT_KINDS and event.text is not None:
                parts.append(event.text)
            elif event.kind in _BREAK_KINDS:
                parts.append(" ")
            elif event.is_end(TagKind.PARAGRAPH) or event.tag is not None and event.tag.kind is TagKind.HEADING:
                parts.append(" ")
        return " ".join("".join(parts).split())

    def walk(self) -> Iterator["Item"]:
        """Yield this item followed by every nested item, depth first."""

        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True, slots=True)
class Changes:
    added: tuple[Item, ...] = ()
    changed: tuple[Item, ...] = ()
    fixed: tuple[Item, ...] = ()

    def for_category(self, category: Category) -> tuple[Item, ...]:
        return getattr(self, category.value)

    def is_empty(self) -> bool:
        return not (self.added or self.changed or self.fixed)


@dataclass(frozen=True, slots=True)
class Release:
    """One versioned (or "Unreleased") section of a changelog."""

    span: Span
    version: Version | None = None
    date: dt.date | None = None
    link: str | None = None
    yanked: bool = False
    changes: Changes = field(default_factory=Changes)

    @property
    def is_unreleased(self) -> bool:
        return self.version is None and self.date is None


@dataclass(frozen=True, slots=True)
class Changelog:
    """The parsed document: releases in source order plus the whole-document span."""

    releases: tuple[Release, ...]
    span: Span

    def __iter__(self) -> Iterator[Release]:
        return iter(self.releases)

    def __len__(self) -> int:
        return len(self.releases)

    def find(self, version: str | Version) -> Release | None:
        """Return the release matching ``version``, if any."""

        wanted = version if isinstance(version, Version) else Version.parse(version)
        for release in self.releases:
            if release.version is not None and release.version == wanted:
                return release
        return None

    @property
    def unreleased(self) -> Release | None:
        for release in self.releases:
            if release.is_unreleased:
                return release
        return None


def assemble_changelog(releases: Iterable[Release], source: str) -> Changelog:
    """Wrap the accumulated releases with the span of the entire source."""

    return Changelog(releases=tuple(releases), span=Span.from_str(source))
