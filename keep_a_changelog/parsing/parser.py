"""Streaming state machine that folds markdown events into releases."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Sequence, Union

from .base import DiagnosticSink, FileId, HeaderError, Span
from .events import DEFAULT_EXTENSIONS, Event, EventKind, TagKind, markdown_events
from .header import parse_header
from .models import Changelog, Changes, Item, Release, assemble_changelog
from .sections import Category, classify_section

logger = logging.getLogger(__name__)

_TEXT_KINDS = (EventKind.TEXT, EventKind.CODE)
_CONTAINER_KINDS = frozenset(
    {TagKind.LIST, TagKind.ITEM, TagKind.BLOCK_QUOTE, TagKind.FOOTNOTE_DEFINITION}
)


def parse(
    file_id: FileId,
    source: str,
    on_diagnostic: DiagnosticSink,
    *,
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
) -> Changelog:
    """Parse a Keep a Changelog document.

    Malformed release headings are reported through ``on_diagnostic`` (called
    synchronously, in document order) and skipped; a ``Changelog`` is always
    returned.
    """

    accumulator = _Accumulator(file_id=file_id, on_diagnostic=on_diagnostic)
    state: ParserState = IDLE

    for event, span in markdown_events(source, extensions=extensions):
        state = process(state, event, span, accumulator)

    flush(state, accumulator)
    logger.debug("Parsed %d release(s) from file %s", len(accumulator.releases), file_id)
    return assemble_changelog(accumulator.releases, source)


@dataclass(slots=True)
class _Accumulator:
    file_id: FileId
    on_diagnostic: DiagnosticSink
    releases: list[Release] = field(default_factory=list)
    depth: int = 0

    def report(self, error: HeaderError) -> None:
        logger.debug("Skipping release heading: %s", error)
        self.on_diagnostic(error.diagnostic)

    def track(self, event: Event) -> None:
        """Count the block containers (lists, items, quotes) currently open."""

        if event.tag is None or event.tag.kind not in _CONTAINER_KINDS:
            return
        if event.kind is EventKind.START:
            self.depth += 1
        elif event.kind is EventKind.END:
            self.depth = max(0, self.depth - 1)

    @property
    def at_top_level(self) -> bool:
        return self.depth == 0


@dataclass(slots=True)
class _ItemDraft:
    span: Span
    body: list[Event] = field(default_factory=list)
    children: list[Item] = field(default_factory=list)

    def finish(self) -> Item:
        return Item(body=tuple(self.body), span=self.span, children=tuple(self.children))


@dataclass(slots=True)
class ReleaseDraft:
    """Mutable accumulation of a release while its body is being read."""

    header: Release
    end: int
    section: Category | None = None
    section_text: list[str] | None = None
    paragraph: list[Event] | None = None
    items: list[_ItemDraft] = field(default_factory=list)
    changes: dict[Category, list[Item]] = field(
        default_factory=lambda: {category: [] for category in Category}
    )

    @classmethod
    def from_header(cls, release: Release) -> "ReleaseDraft":
        return cls(header=release, end=release.span.end)

    def consume(self, event: Event, span: Span, *, top_level: bool = True) -> None:
        """Fold one body event into the draft.

        Section markers only count at ``top_level``; a heading or bold
        paragraph inside a block quote never switches the category.
        """

        self.end = max(self.end, span.end)

        if self.section_text is not None:
            if event.is_end(TagKind.HEADING):
                self._enter_section("".join(self.section_text))
                self.section_text = None
            elif event.kind in _TEXT_KINDS and event.text:
                self.section_text.append(event.text)
            return

        if event.is_start(TagKind.ITEM):
            self.items.append(_ItemDraft(span))
            return
        if event.is_end(TagKind.ITEM):
            if self.items:
                item = self.items.pop().finish()
                if self.items:
                    self.items[-1].children.append(item)
                else:
                    self._attach(item)
            return
        if self.items:
            # nested list markers belong to the children, not the body
            if not (event.is_start(TagKind.LIST) or event.is_end(TagKind.LIST)):
                self.items[-1].body.append(event)
            return
        if not top_level:
            return

        if event.is_start(TagKind.HEADING, level=3):
            self.section_text = []
        elif self.paragraph is not None:
            if event.is_end(TagKind.PARAGRAPH):
                label = _pseudo_heading(self.paragraph)
                self.paragraph = None
                if label is not None:
                    self._enter_section(label)
            else:
                self.paragraph.append(event)
        elif event.is_start(TagKind.PARAGRAPH):
            self.paragraph = []

    def finish(self) -> Release:
        header = self.header
        changes = Changes(
            added=tuple(self.changes[Category.ADDED]),
            changed=tuple(self.changes[Category.CHANGED]),
            fixed=tuple(self.changes[Category.FIXED]),
        )
        return dataclasses.replace(
            header,
            span=Span(header.span.start, max(header.span.end, self.end)),
            changes=changes,
        )

    def _enter_section(self, text: str) -> None:
        self.section = classify_section(text)
        if self.section is None:
            logger.debug("Ignoring items under unrecognized section %r", text.strip())

    def _attach(self, item: Item) -> None:
        if self.section is None:
            logger.debug(
                "Dropping list item at bytes %d-%d outside a recognized section",
                item.span.start,
                item.span.end,
            )
            return
        self.changes[self.section].append(item)


@dataclass(frozen=True, slots=True)
class Idle:
    """Waiting for a level 2 heading.

    Idle + Start(Heading(2)) outside any list or block quote => ReadingHeader
    Idle + other => Idle
    """


@dataclass(slots=True)
class ReadingHeader:
    """Reading the contents of a heading such as ``## [1.2.3] - 2020-01-02``.

    ReadingHeader + End(Heading(2)) => ReadingRelease | Idle (diagnostic emitted)
    ReadingHeader + other => ReadingHeader (other added to buffer)
    """

    buffer: list[tuple[Event, Span]]


@dataclass(slots=True)
class ReadingRelease:
    """Reading the body of a release.

    ReadingRelease + Start(Heading(2)) outside any list or block quote => ReadingHeader (release finalized)
    ReadingRelease + Start(Heading(3)) => ReadingRelease (section selected)
    ReadingRelease + list items => ReadingRelease (items attached)
    ReadingRelease + other => ReadingRelease (ignored)
    """

    release: ReleaseDraft


ParserState = Union[Idle, ReadingHeader, ReadingRelease]
IDLE = Idle()


def process(state: ParserState, event: Event, span: Span, accumulator: _Accumulator) -> ParserState:
    """Advance the state machine by one event."""

    accumulator.track(event)
    if isinstance(state, Idle):
        return process_idle(event, span, accumulator)
    if isinstance(state, ReadingHeader):
        return process_reading_header(event, span, state.buffer, accumulator)
    if isinstance(state, ReadingRelease):
        return process_reading_release(event, span, state.release, accumulator)
    raise TypeError(f"Unknown parser state: {state!r}")


def flush(state: ParserState, accumulator: _Accumulator) -> None:
    """Finalise whatever was in progress when the event stream ended."""

    if isinstance(state, Idle):
        return
    if isinstance(state, ReadingHeader):
        try:
            accumulator.releases.append(parse_header(state.buffer, accumulator.file_id))
        except HeaderError as exc:
            accumulator.report(exc)
        return
    if isinstance(state, ReadingRelease):
        accumulator.releases.append(state.release.finish())
        return
    raise TypeError(f"Unknown parser state: {state!r}")


def process_idle(event: Event, span: Span, accumulator: _Accumulator) -> ParserState:
    if accumulator.at_top_level and event.is_start(TagKind.HEADING, level=2):
        return ReadingHeader(buffer=[(event, span)])
    return IDLE


def process_reading_header(
    event: Event,
    span: Span,
    buffer: list[tuple[Event, Span]],
    accumulator: _Accumulator,
) -> ParserState:
    if event.is_end(TagKind.HEADING, level=2):
        try:
            release = parse_header(buffer, accumulator.file_id)
        except HeaderError as exc:
            # resynchronize at the next level 2 heading
            accumulator.report(exc)
            return IDLE
        return ReadingRelease(release=ReleaseDraft.from_header(release))

    buffer.append((event, span))
    return ReadingHeader(buffer=buffer)


def process_reading_release(
    event: Event,
    span: Span,
    draft: ReleaseDraft,
    accumulator: _Accumulator,
) -> ParserState:
    if accumulator.at_top_level and event.is_start(TagKind.HEADING, level=2):
        accumulator.releases.append(draft.finish())
        return process_idle(event, span, accumulator)

    draft.consume(event, span, top_level=accumulator.at_top_level)
    return ReadingRelease(release=draft)


def _pseudo_heading(events: list[Event]) -> str | None:
    """Return the text of a paragraph made of a single strong run, e.g. ``**Added**``."""

    if len(events) < 3 or not events[0].is_start(TagKind.STRONG) or not events[-1].is_end(TagKind.STRONG):
        return None
    inner = events[1:-1]
    if not all(event.kind in _TEXT_KINDS for event in inner):
        return None
    return "".join(event.text or "" for event in inner)
