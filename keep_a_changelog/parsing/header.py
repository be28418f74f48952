"""Extraction of release metadata from the events of a level-2 heading."""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from typing import Iterator, Sequence

from semver import Version

from .base import FileId, HeaderError, Span
from .diagnostics import Diagnostic
from .events import Event, EventKind, TagKind
from .models import Release

UNRELEASED = "unreleased"
YANKED_MARKER = "[yanked]"
EXPECTED_VERSION = "expected a version or the word Unreleased"
EXPECTED_DATE = "expected a release date after the version"
INVALID_DATE = "expected a date in YYYY-MM-DD format"
TRAILING_AFTER_DATE = "unexpected text after the release date"
TRAILING_AFTER_UNRELEASED = "unexpected text after Unreleased"

_SEPARATORS = frozenset({"-", "–", "—"})
_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
_WORD_PATTERN = re.compile(r"\S+")
_TEXT_KINDS = (EventKind.TEXT, EventKind.CODE)


@dataclass(frozen=True, slots=True)
class _Word:
    text: str
    span: Span
    link: str | None = None


def parse_header(buffer: Sequence[tuple[Event, Span]], file_id: FileId) -> Release:
    """Build an empty release from a buffered heading.

    ``buffer`` starts with the heading's opening event (whose span covers the
    whole heading) followed by its inline events. Reads, left to right, a
    version (or ``Unreleased``), a separator, a ``YYYY-MM-DD`` date and an
    optional ``[YANKED]`` marker. A link around the version supplies
    ``Release.link``.

    Raises:
        HeaderError: carrying a diagnostic that points at the offending word.
    """

    if not buffer:
        raise ValueError("A heading buffer must contain at least its opening event")

    heading_span = buffer[0][1]
    words = list(_heading_words(buffer[1:]))
    if not words:
        raise _failure(file_id, heading_span, EXPECTED_VERSION, "this heading is empty")

    first, rest = words[0], words[1:]
    token = _unwrap(first.text)

    if token.casefold() == UNRELEASED:
        if rest:
            raise _failure(file_id, rest[0].span, TRAILING_AFTER_UNRELEASED)
        return Release(span=heading_span, link=first.link)

    version = _parse_version(token, first, file_id)

    rest = _skip_separators(rest)
    if not rest:
        raise _failure(file_id, first.span, EXPECTED_DATE, "no date follows this version")

    date_word, trailing = rest[0], rest[1:]
    release_date = _parse_date(date_word, file_id)

    yanked = False
    if trailing and trailing[0].text.casefold() == YANKED_MARKER:
        yanked = True
        trailing = trailing[1:]
    if trailing:
        raise _failure(file_id, trailing[0].span, TRAILING_AFTER_DATE)

    return Release(
        span=heading_span,
        version=version,
        date=release_date,
        link=first.link,
        yanked=yanked,
    )


def _heading_words(events: Sequence[tuple[Event, Span]]) -> Iterator[_Word]:
    link_text: list[str] | None = None
    link_destination: str | None = None
    link_span: Span | None = None

    for event, span in events:
        if event.is_start(TagKind.LINK):
            link_text = []
            link_destination = event.tag.destination if event.tag else None
            link_span = span
        elif event.is_end(TagKind.LINK):
            if link_text is not None:
                text = "".join(link_text).strip()
                if text:
                    yield _Word(text, link_span or span, link_destination)
            link_text = None
            link_destination = None
            link_span = None
        elif event.kind in _TEXT_KINDS and event.text:
            if link_text is not None:
                link_text.append(event.text)
            else:
                yield from _split_words(event.text, span)


def _split_words(text: str, span: Span) -> Iterator[_Word]:
    exact = len(text.encode("utf-8")) == len(span)
    for match in _WORD_PATTERN.finditer(text):
        if exact:
            start = span.start + len(text[: match.start()].encode("utf-8"))
            word_span = Span(start, start + len(match.group().encode("utf-8")))
        else:
            word_span = span
        yield _Word(match.group(), word_span)


def _unwrap(text: str) -> str:
    if len(text) >= 2 and text.startswith("[") and text.endswith("]"):
        return text[1:-1].strip()
    return text


def _skip_separators(words: Sequence[_Word]) -> Sequence[_Word]:
    index = 0
    while index < len(words) and words[index].text in _SEPARATORS:
        index += 1
    return words[index:]


def _parse_version(token: str, word: _Word, file_id: FileId) -> Version:
    try:
        return Version.parse(token)
    except ValueError:
        raise _failure(file_id, word.span, EXPECTED_VERSION, "not a valid version") from None


def _parse_date(word: _Word, file_id: FileId) -> dt.date:
    if not _DATE_PATTERN.fullmatch(word.text):
        raise _failure(file_id, word.span, INVALID_DATE, "not a YYYY-MM-DD date")
    try:
        return dt.date.fromisoformat(word.text)
    except ValueError:
        raise _failure(file_id, word.span, INVALID_DATE, "not a valid calendar date") from None


def _failure(file_id: FileId, span: Span, message: str, label: str | None = None) -> HeaderError:
    return HeaderError(Diagnostic.error(message, file_id=file_id, span=span, label=label))
