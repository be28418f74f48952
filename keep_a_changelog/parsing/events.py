"""Normalized markdown events built from the markdown-it token stream.

markdown-it hands out mutable ``Token`` objects that share ``attrs``, ``meta``
and ``children`` containers with the tokenizer's output. Everything downstream
of this module works on frozen :class:`Event` values paired with a byte
:class:`~keep_a_changelog.parsing.base.Span`, so buffers can outlive the token
list and be compared structurally.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Sequence

from markdown_it import MarkdownIt
from markdown_it.token import Token

from .base import Span
from .utils import SourceText

KNOWN_EXTENSIONS = ("table", "strikethrough", "tasklists")
DEFAULT_EXTENSIONS = ("table", "strikethrough")
_TOKENIZER_RULES = frozenset({"table", "strikethrough"})
_TASK_MARKER = re.compile(r"\[([ xX])\](?:[ \t]+|$)")


class EventKind(Enum):
    """Every structural event the tokenizer can produce."""

    START = "start"
    END = "end"
    TEXT = "text"
    CODE = "code"
    HTML = "html"
    FOOTNOTE_REFERENCE = "footnote_reference"
    SOFT_BREAK = "soft_break"
    HARD_BREAK = "hard_break"
    RULE = "rule"
    TASK_LIST_MARKER = "task_list_marker"


class TagKind(Enum):
    """Container elements that open with a START event and close with an END event."""

    PARAGRAPH = "paragraph"
    HEADING = "heading"
    BLOCK_QUOTE = "block_quote"
    CODE_BLOCK = "code_block"
    LIST = "list"
    ITEM = "item"
    FOOTNOTE_DEFINITION = "footnote_definition"
    TABLE = "table"
    TABLE_HEAD = "table_head"
    TABLE_ROW = "table_row"
    TABLE_CELL = "table_cell"
    EMPHASIS = "emphasis"
    STRONG = "strong"
    STRIKETHROUGH = "strikethrough"
    LINK = "link"
    IMAGE = "image"


@dataclass(frozen=True, slots=True)
class Tag:
    """A container element together with its payload."""

    kind: TagKind
    level: int | None = None
    ordered: bool = False
    start_number: int | None = None
    destination: str | None = None
    title: str | None = None
    label: str | None = None

    @classmethod
    def heading(cls, level: int) -> "Tag":
        return cls(TagKind.HEADING, level=level)


@dataclass(frozen=True, slots=True)
class Event:
    """A self-contained markdown event."""

    kind: EventKind
    tag: Tag | None = None
    text: str | None = None
    checked: bool | None = None

    @classmethod
    def start(cls, tag: Tag) -> "Event":
        return cls(EventKind.START, tag=tag)

    @classmethod
    def end(cls, tag: Tag) -> "Event":
        return cls(EventKind.END, tag=tag)

    @classmethod
    def plain(cls, value: str) -> "Event":
        return cls(EventKind.TEXT, text=value)

    @classmethod
    def code(cls, value: str) -> "Event":
        return cls(EventKind.CODE, text=value)

    @classmethod
    def html(cls, value: str) -> "Event":
        return cls(EventKind.HTML, text=value)

    @classmethod
    def footnote_reference(cls, label: str) -> "Event":
        return cls(EventKind.FOOTNOTE_REFERENCE, text=label)

    @classmethod
    def task_list_marker(cls, checked: bool) -> "Event":
        return cls(EventKind.TASK_LIST_MARKER, checked=checked)

    def is_start(self, kind: TagKind, level: int | None = None) -> bool:
        return self._is_tag(EventKind.START, kind, level)

    def is_end(self, kind: TagKind, level: int | None = None) -> bool:
        return self._is_tag(EventKind.END, kind, level)

    def _is_tag(self, event_kind: EventKind, kind: TagKind, level: int | None) -> bool:
        if self.kind is not event_kind or self.tag is None or self.tag.kind is not kind:
            return False
        return level is None or self.tag.level == level


SOFT_BREAK = Event(EventKind.SOFT_BREAK)
HARD_BREAK = Event(EventKind.HARD_BREAK)
RULE = Event(EventKind.RULE)

_SIMPLE_TAGS: dict[str, TagKind] = {
    "paragraph": TagKind.PARAGRAPH,
    "blockquote": TagKind.BLOCK_QUOTE,
    "list_item": TagKind.ITEM,
    "table": TagKind.TABLE,
    "thead": TagKind.TABLE_HEAD,
    "tr": TagKind.TABLE_ROW,
    "th": TagKind.TABLE_CELL,
    "td": TagKind.TABLE_CELL,
    "em": TagKind.EMPHASIS,
    "strong": TagKind.STRONG,
    "s": TagKind.STRIKETHROUGH,
}


def build_tokenizer(extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> MarkdownIt:
    """Return a CommonMark tokenizer with the requested extensions enabled."""

    unknown = [name for name in extensions if name not in KNOWN_EXTENSIONS]
    if unknown:
        raise ValueError(f"Unknown markdown extension(s): {', '.join(sorted(unknown))}")
    tokenizer = MarkdownIt("commonmark")
    rules = [name for name in extensions if name in _TOKENIZER_RULES]
    if rules:
        tokenizer.enable(rules)
    return tokenizer


def markdown_events(
    source: str,
    *,
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
) -> Iterator[tuple[Event, Span]]:
    """Tokenize ``source`` and yield normalized events with their byte spans."""

    tokens = build_tokenizer(extensions).parse(source)
    return iter_events(source, tokens, task_lists="tasklists" in extensions)


def normalize_token(token: Token) -> list[Event]:
    """Convert a single markdown-it token into equivalent self-contained events.

    Inline containers are flattened into their children's events; tokens with
    no counterpart in the event vocabulary produce nothing.
    """

    if token.hidden:
        return []
    if token.nesting != 0:
        tag = _token_tag(token)
        if tag is None:
            return []
        return [Event.start(tag) if token.nesting == 1 else Event.end(tag)]

    token_type = token.type
    if token_type == "inline":
        events: list[Event] = []
        for child in token.children or ():
            events.extend(normalize_token(child))
        return events
    if token_type == "text":
        return [Event.plain(token.content)]
    if token_type == "code_inline":
        return [Event.code(token.content)]
    if token_type in ("html_inline", "html_block"):
        return [Event.html(token.content)]
    if token_type == "softbreak":
        return [SOFT_BREAK]
    if token_type == "hardbreak":
        return [HARD_BREAK]
    if token_type == "hr":
        return [RULE]
    if token_type in ("fence", "code_block"):
        tag = Tag(TagKind.CODE_BLOCK, label=(token.info or "").strip() or None)
        return [Event.start(tag), Event.plain(token.content), Event.end(tag)]
    if token_type == "footnote_ref":
        return [Event.footnote_reference(_footnote_label(token))]
    if token_type == "image":
        tag = _image_tag(token)
        alt: list[Event] = []
        for child in token.children or ():
            alt.extend(normalize_token(child))
        return [Event.start(tag), *alt, Event.end(tag)]
    return []


def iter_events(
    source: str | SourceText,
    tokens: Sequence[Token],
    *,
    task_lists: bool = False,
) -> Iterator[tuple[Event, Span]]:
    """Yield ``(event, span)`` pairs for a markdown-it token stream in source order."""

    text = source if isinstance(source, SourceText) else SourceText(source)
    open_stack: list[tuple[Tag, Span]] = []

    for index, token in enumerate(tokens):
        if token.hidden:
            continue
        if token.type == "inline":
            start, end = _inline_bounds(text, token)
            scanner = _InlineScanner(text, start, end)
            marker = task_lists and _opens_list_item(tokens, index)
            yield from scanner.scan(token.children or (), task_marker=marker)
            continue

        if token.nesting == 1:
            tag = _token_tag(token)
            if tag is None:
                continue
            span = _block_span(text, tokens, index, open_stack)
            open_stack.append((tag, span))
            yield Event.start(tag), span
        elif token.nesting == -1:
            if _token_tag(token) is None:
                continue
            tag, span = open_stack.pop()
            yield Event.end(tag), span
        else:
            span = _leaf_span(text, token, open_stack)
            for event in normalize_token(token):
                yield event, span


def _token_tag(token: Token) -> Tag | None:
    base = token.type.rsplit("_", 1)[0]
    if base == "heading":
        return Tag.heading(int(token.tag[1:]))
    if base == "bullet_list":
        return Tag(TagKind.LIST)
    if base == "ordered_list":
        start = token.attrGet("start")
        if token.nesting == 1:
            return Tag(TagKind.LIST, ordered=True, start_number=int(start) if start is not None else 1)
        return Tag(TagKind.LIST, ordered=True)
    if base == "link":
        return Tag(
            TagKind.LINK,
            destination=_attr(token, "href"),
            title=_attr(token, "title"),
        )
    if base == "footnote":
        return Tag(TagKind.FOOTNOTE_DEFINITION, label=_footnote_label(token))
    kind = _SIMPLE_TAGS.get(base)
    if kind is None:
        return None
    return Tag(kind)


def _image_tag(token: Token) -> Tag:
    return Tag(TagKind.IMAGE, destination=_attr(token, "src"), title=_attr(token, "title"))


def _attr(token: Token, name: str) -> str | None:
    value = token.attrGet(name)
    return None if value is None else str(value)


def _footnote_label(token: Token) -> str:
    meta = token.meta or {}
    label = meta.get("label")
    if label is None:
        label = meta.get("id", "")
    return str(label)


def _opens_list_item(tokens: Sequence[Token], index: int) -> bool:
    return (
        index >= 2
        and tokens[index - 1].type == "paragraph_open"
        and tokens[index - 2].type == "list_item_open"
    )


def _block_span(
    text: SourceText,
    tokens: Sequence[Token],
    index: int,
    open_stack: list[tuple[Tag, Span]],
) -> Span:
    token = tokens[index]
    if token.type == "paragraph_open" and index + 1 < len(tokens) and tokens[index + 1].type == "inline":
        return text.span(*_inline_bounds(text, tokens[index + 1]))
    return _leaf_span(text, token, open_stack)


def _leaf_span(text: SourceText, token: Token, open_stack: list[tuple[Tag, Span]]) -> Span:
    if token.map:
        return text.span(*text.line_range(token.map[0], token.map[1]))
    if open_stack:
        return open_stack[-1][1]
    return text.span(len(text), len(text))


def _inline_bounds(text: SourceText, token: Token) -> tuple[int, int]:
    if token.map:
        low, high = text.line_range(token.map[0], token.map[1])
    else:
        low, high = 0, len(text)
    content = token.content
    if not content:
        return low, low
    first_line = content.split("\n", 1)[0]
    position = text.find(first_line, low, high)
    if position < 0:
        return low, high
    if "\n" not in content:
        return position, position + len(content)
    return position, high


class _InlineScanner:
    """Walk an inline token's children, locating each one in the source text.

    Positions are character offsets until the final conversion to byte spans.
    When a child's payload does not appear verbatim (entities, escapes) it
    receives a zero-width span at the current cursor.
    """

    def __init__(self, text: SourceText, start: int, end: int) -> None:
        self._text = text
        self._cursor = start
        self._end = end
        self._results: list[list] = []
        self._pending: list[tuple[int, Tag]] = []

    def scan(self, children: Sequence[Token], *, task_marker: bool = False) -> list[tuple[Event, Span]]:
        for position, child in enumerate(children):
            if task_marker and position == 0 and child.type == "text":
                if self._scan_task_marker(child.content):
                    continue
            self._scan_child(child)
        while self._pending:
            index, _tag = self._pending.pop()
            self._results[index][2] = max(self._results[index][2], self._cursor)
        return [(event, self._text.span(start, end)) for event, start, end in self._results]

    def _scan_task_marker(self, content: str) -> bool:
        match = _TASK_MARKER.match(content)
        if match is None:
            return False
        start = self._locate("[")
        self._emit(Event.task_list_marker(match.group(1) in "xX"), start, start + 3)
        self._cursor = start + 3
        remainder = content[match.end():]
        if remainder:
            self._scan_text(Event.plain(remainder), remainder)
        return True

    def _scan_child(self, child: Token) -> None:
        if child.nesting == 1:
            tag = _token_tag(child)
            if tag is not None:
                self._open(tag, "<" if child.markup == "autolink" else (child.markup or "["))
            return
        if child.nesting == -1:
            if _token_tag(child) is not None:
                self._close(child)
            return

        child_type = child.type
        if child_type == "text":
            self._scan_text(Event.plain(child.content), child.content)
        elif child_type == "html_inline":
            self._scan_text(Event.html(child.content), child.content)
        elif child_type == "code_inline":
            self._scan_code(child)
        elif child_type in ("softbreak", "hardbreak"):
            self._scan_break(SOFT_BREAK if child_type == "softbreak" else HARD_BREAK)
        elif child_type == "image":
            tag = _image_tag(child)
            self._open(tag, "![")
            for alt in child.children or ():
                self._scan_child(alt)
            self._close_bracketed()
        elif child_type == "footnote_ref":
            start = self._locate("[^")
            closing = self._text.find("]", start, self._end)
            stop = closing + 1 if closing >= 0 else start
            self._emit(Event.footnote_reference(_footnote_label(child)), start, stop)
            self._cursor = max(self._cursor, stop)
        else:
            for event in normalize_token(child):
                self._emit(event, self._cursor, self._cursor)

    def _locate(self, needle: str) -> int:
        position = self._text.find(needle, self._cursor, self._end)
        return position if position >= 0 else self._cursor

    def _emit(self, event: Event, start: int, end: int) -> int:
        self._results.append([event, start, max(start, end)])
        return len(self._results) - 1

    def _scan_text(self, event: Event, content: str) -> None:
        position = self._text.find(content, self._cursor, self._end)
        if position < 0:
            self._emit(event, self._cursor, self._cursor)
            return
        stop = position + len(content)
        self._emit(event, position, stop)
        self._cursor = stop

    def _scan_code(self, child: Token) -> None:
        markup = child.markup or "`"
        position = self._text.find(markup, self._cursor, self._end)
        if position < 0:
            self._emit(Event.code(child.content), self._cursor, self._cursor)
            return
        closing = self._text.find(markup, position + len(markup), self._end)
        if closing >= 0:
            stop = closing + len(markup)
        else:
            stop = position + len(markup) + len(child.content)
        self._emit(Event.code(child.content), position, stop)
        self._cursor = stop

    def _scan_break(self, event: Event) -> None:
        position = self._text.find("\n", self._cursor, self._end)
        if position < 0:
            self._emit(event, self._cursor, self._cursor)
            return
        start = position
        if event is HARD_BREAK:
            while start > self._cursor and self._text.text[start - 1] in " \\":
                start -= 1
        self._emit(event, start, position + 1)
        self._cursor = position + 1

    def _open(self, tag: Tag, needle: str) -> None:
        start = self._locate(needle)
        found = self._text.text.startswith(needle, start)
        index = self._emit(Event.start(tag), start, start)
        self._pending.append((index, tag))
        if found:
            self._cursor = start + len(needle)

    def _close(self, child: Token) -> None:
        if child.type.startswith("link"):
            self._close_bracketed(autolink=child.markup == "autolink")
            return
        markup = child.markup
        position = self._text.find(markup, self._cursor, self._end) if markup else -1
        stop = position + len(markup) if position >= 0 else self._cursor
        self._finish(stop)

    def _close_bracketed(self, *, autolink: bool = False) -> None:
        text = self._text.text
        if autolink:
            closing = self._text.find(">", self._cursor, self._end)
            self._finish(closing + 1 if closing >= 0 else self._cursor)
            return
        closing = self._text.find("]", self._cursor, self._end)
        if closing < 0:
            self._finish(self._cursor)
            return
        stop = closing + 1
        if stop < self._end and text[stop] == "(":
            paren = self._text.find(")", stop, self._end)
            if paren >= 0:
                stop = paren + 1
        elif stop < self._end and text[stop] == "[":
            bracket = self._text.find("]", stop, self._end)
            if bracket >= 0:
                stop = bracket + 1
        self._finish(stop)

    def _finish(self, stop: int) -> None:
        if not self._pending:
            return
        index, tag = self._pending.pop()
        start = self._results[index][1]
        stop = max(stop, start)
        self._results[index][2] = stop
        self._emit(Event.end(tag), start, stop)
        self._cursor = max(self._cursor, stop)
