"""Behavioural tests for the streaming changelog parser."""

from __future__ import annotations

import datetime as dt
from pathlib import Path

from semver import Version

from keep_a_changelog.parsing.base import FileId, Span
from keep_a_changelog.parsing.diagnostics import Diagnostics, Severity
from keep_a_changelog.parsing.events import Event, EventKind, Tag, TagKind
from keep_a_changelog.parsing.header import EXPECTED_VERSION
from keep_a_changelog.parsing.parser import (
    IDLE,
    ReadingHeader,
    ReadingRelease,
    _Accumulator,
    flush,
    parse,
    process,
)

REPO_ROOT = Path(__file__).resolve().parents[2]
DATA_DIR = REPO_ROOT / "tests" / "data"

TWO_RELEASES = """\
## [2.0.0] - 2021-06-01

### Added

- Support X

## [1.0.0] - 2021-01-01

### Fixed

- Crash on Y
"""


def _texts(items) -> list[str]:
    return [item.text() for item in items]


def test_document_without_level_two_headings(parse_text) -> None:
    source = "# Changelog\n\nSome introduction.\n\n### Added\n\n- orphan\n"

    changelog, diagnostics = parse_text(source)

    assert changelog.releases == ()
    assert len(diagnostics) == 0


def test_empty_document(parse_text) -> None:
    changelog, diagnostics = parse_text("")

    assert changelog.releases == ()
    assert changelog.span == Span(0, 0)
    assert not diagnostics


def test_single_heading_span_covers_heading(parse_text) -> None:
    changelog, diagnostics = parse_text("## [1.2.3] - 2020-01-02\n")

    (release,) = changelog.releases
    assert release.version == Version.parse("1.2.3")
    assert release.date == dt.date(2020, 1, 2)
    assert release.span == Span(0, 23)
    assert not diagnostics


def test_unreleased_in_any_case(parse_text) -> None:
    for heading in ("## Unreleased", "## unreleased", "## UnReLeAsEd"):
        changelog, diagnostics = parse_text(heading + "\n")

        (release,) = changelog.releases
        assert release.version is None
        assert release.date is None
        assert len(diagnostics) == 0


def test_end_to_end_two_releases(parse_text, span_text) -> None:
    changelog, diagnostics = parse_text(TWO_RELEASES)

    assert not diagnostics
    assert len(changelog.releases) == 2
    newer, older = changelog.releases

    assert newer.version == Version.parse("2.0.0")
    assert _texts(newer.changes.added) == ["Support X"]
    assert newer.changes.changed == ()
    assert newer.changes.fixed == ()

    assert older.version == Version.parse("1.0.0")
    assert _texts(older.changes.fixed) == ["Crash on Y"]
    assert older.changes.added == ()
    assert older.changes.changed == ()

    newer_text = span_text(TWO_RELEASES, newer.span)
    assert newer_text.startswith("## [2.0.0] - 2021-06-01")
    assert newer_text.endswith("- Support X")
    assert span_text(TWO_RELEASES, older.span).startswith("## [1.0.0]")
    assert newer.span.end <= older.span.start


def test_malformed_heading_resynchronizes(parse_text) -> None:
    source = (
        "## Not A Version\n\n### Added\n\n- lost\n\n"
        "## [1.0.0] - 2020-01-01\n\n### Added\n\n- kept\n"
    )

    changelog, diagnostics = parse_text(source)

    assert len(diagnostics) == 1
    (diagnostic,) = diagnostics
    assert diagnostic.message == EXPECTED_VERSION
    assert diagnostic.severity is Severity.ERROR
    assert diagnostic.span == Span(3, 6)
    (release,) = changelog.releases
    assert release.version == Version.parse("1.0.0")
    assert _texts(release.changes.added) == ["kept"]


def test_diagnostics_arrive_in_document_order(parse_text) -> None:
    source = "## first bad\n\n## 1.0.0 - someday\n\n## Unreleased\n"

    changelog, diagnostics = parse_text(source)

    spans = [diagnostic.span for diagnostic in diagnostics]
    assert len(spans) == 2
    assert spans == sorted(spans)
    assert len(changelog.releases) == 1


def test_plain_callable_sink(files) -> None:
    received = []
    source = "## nope\n"
    file_id = files.add("CHANGELOG.md", source)

    changelog = parse(file_id, source, received.append)

    assert changelog.releases == ()
    assert [diagnostic.file_id for diagnostic in received] == [file_id]


def test_items_follow_their_section_in_order(parse_text) -> None:
    source = """\
## [1.0.0] - 2020-01-01

### Added

- first
- second

### Deprecated

- old api

### Changed

- third
"""
    changelog, diagnostics = parse_text(source)

    (release,) = changelog.releases
    assert _texts(release.changes.added) == ["first", "second"]
    assert _texts(release.changes.changed) == ["third"]
    assert release.changes.fixed == ()
    assert len(diagnostics) == 0


def test_items_before_any_section_are_dropped(parse_text) -> None:
    source = "## [1.0.0] - 2020-01-01\n\n- stray\n\n### Fixed\n\n- real\n"

    changelog, diagnostics = parse_text(source)

    (release,) = changelog.releases
    assert _texts(release.changes.fixed) == ["real"]
    assert release.changes.added == () and release.changes.changed == ()
    assert not diagnostics


def test_section_does_not_leak_into_next_release(parse_text) -> None:
    source = "## [2.0.0] - 2020-02-01\n\n### Added\n\n- a\n\n## [1.0.0] - 2020-01-01\n\n- b\n"

    changelog, _ = parse_text(source)

    newer, older = changelog.releases
    assert _texts(newer.changes.added) == ["a"]
    assert older.changes.is_empty()


def test_nested_items_become_children(parse_text, span_text) -> None:
    source = """\
## [1.0.0] - 2020-01-01

### Added

- parent
  - child one
  - child two
- sibling
"""
    changelog, _ = parse_text(source)

    parent, sibling = changelog.releases[0].changes.added
    assert parent.text() == "parent"
    assert _texts(parent.children) == ["child one", "child two"]
    assert sibling.text() == "sibling"
    assert sibling.children == ()
    assert [item.text() for item in parent.walk()] == ["parent", "child one", "child two"]
    assert not any(event.is_start(TagKind.LIST) for event in parent.body)
    assert all(event.text not in ("child one", "child two") for event in parent.body)
    assert span_text(source, parent.children[0].span) == "- child one"
    assert parent.span.start < parent.children[0].span.start < parent.span.end


def test_loose_list_item_text(parse_text) -> None:
    source = "## [1.0.0] - 2020-01-01\n\n### Fixed\n\n- one\n\n- two\n"

    changelog, _ = parse_text(source)

    fixed = changelog.releases[0].changes.fixed
    assert _texts(fixed) == ["one", "two"]
    assert fixed[0].body[0].is_start(TagKind.PARAGRAPH)


def test_bold_paragraph_acts_as_section(parse_text) -> None:
    source = "## [1.0.0] - 2020-01-01\n\n**Added**\n\n- via bold\n\nSome **bold** remark.\n\n- still added\n"

    changelog, _ = parse_text(source)

    assert _texts(changelog.releases[0].changes.added) == ["via bold", "still added"]


def test_emphasized_section_heading(parse_text) -> None:
    source = "## [1.0.0] - 2020-01-01\n\n### *Fixed*\n\n- styled\n"

    changelog, _ = parse_text(source)

    assert _texts(changelog.releases[0].changes.fixed) == ["styled"]


def test_setext_release_heading(parse_text) -> None:
    source = "1.0.0 - 2020-01-02\n------------------\n\n### Added\n\n- item\n"

    changelog, diagnostics = parse_text(source)

    (release,) = changelog.releases
    assert release.version == Version.parse("1.0.0")
    assert _texts(release.changes.added) == ["item"]
    assert not diagnostics


def test_yanked_release(parse_text) -> None:
    changelog, diagnostics = parse_text("## [0.0.2] - 2014-07-10 [YANKED]\n")

    assert changelog.releases[0].yanked is True
    assert not diagnostics


def test_heading_nested_in_list_item_stays_in_release(parse_text) -> None:
    source = """\
## [1.0.0] - 2020-01-01

### Added

- Support X
  ## Details
- Support Y
"""
    changelog, diagnostics = parse_text(source)

    (release,) = changelog.releases
    first, second = release.changes.added
    assert first.text() == "Support X Details"
    assert second.text() == "Support Y"
    assert any(event.is_start(TagKind.HEADING, level=2) for event in first.body)
    assert not diagnostics


def test_block_quoted_headings_do_not_start_releases(parse_text) -> None:
    source = """\
> ## 1.0.0
> quoted

## [2.0.0] - 2021-01-01

### Fixed

> ### Added
> **Changed**

- Crash on Y
"""
    changelog, diagnostics = parse_text(source)

    (release,) = changelog.releases
    assert release.version == Version.parse("2.0.0")
    assert _texts(release.changes.fixed) == ["Crash on Y"]
    assert release.changes.added == () and release.changes.changed == ()
    assert not diagnostics


def test_task_list_markers_stay_in_item_body(parse_text) -> None:
    source = "## Unreleased\n\n### Added\n\n- [x] shipped\n"

    changelog, _ = parse_text(source, extensions=("tasklists",))

    (item,) = changelog.releases[0].changes.added
    assert item.body[0] == Event.task_list_marker(True)
    assert item.text() == "shipped"


def test_idempotent(parse_text) -> None:
    first, _ = parse_text(TWO_RELEASES)
    second, _ = parse_text(TWO_RELEASES)

    assert first == second


def test_changelog_span_covers_whole_source(parse_text) -> None:
    for source in (TWO_RELEASES, "# Café\n\n## Unreleased\n\n- ünïcode\n", "no headings at all"):
        changelog, _ = parse_text(source)

        assert changelog.span == Span(0, len(source.encode("utf-8")))


def test_non_ascii_spans_are_byte_ranges(parse_text, span_text) -> None:
    source = "# Journal des modifications\n\n## [1.0.0] - 2020-01-02\n\n### Added\n\n- Café crème\n"

    changelog, _ = parse_text(source)

    (item,) = changelog.releases[0].changes.added
    assert span_text(source, item.span) == "- Café crème"
    assert item.text() == "Café crème"


def test_release_lookup_helpers(parse_text) -> None:
    changelog, _ = parse_text("## Unreleased\n\n" + TWO_RELEASES)

    assert len(changelog) == 3
    assert changelog.unreleased is changelog.releases[0]
    assert changelog.find("1.0.0") is changelog.releases[2]
    assert changelog.find(Version.parse("3.0.0")) is None
    assert [release.version for release in changelog][1:] == [Version.parse("2.0.0"), Version.parse("1.0.0")]


def test_keep_a_changelog_example(parse_text) -> None:
    source = (DATA_DIR / "keep_a_changelog.md").read_text(encoding="utf-8")

    changelog, diagnostics = parse_text(source, name="keep_a_changelog.md")

    assert list(diagnostics) == []
    assert [str(release.version) if release.version else None for release in changelog] == [
        None,
        "1.1.1",
        "1.1.0",
        "1.0.0",
        "0.3.0",
        "0.0.1",
    ]

    unreleased = changelog.unreleased
    assert unreleased is not None
    assert unreleased.link == "https://github.com/olivierlacan/keep-a-changelog/compare/v1.1.1...HEAD"
    assert len(unreleased.changes.added) == 3
    assert _texts(unreleased.changes.fixed) == ["Improve French translation."]

    release = changelog.find("1.0.0")
    assert release.date == dt.date(2017, 6, 20)
    assert release.link == "https://github.com/olivierlacan/keep-a-changelog/compare/v0.3.0...v1.0.0"
    assert len(release.changes.added) == 4
    assert release.changes.added[0].text() == "New visual identity by @tylerfortune8."
    assert _texts(release.changes.changed)[1] == (
        "Start versioning based on the current English version at 0.3.0 to help "
        "translation authors keep things up-to-date."
    )
    assert release.changes.fixed == ()

    oldest = changelog.releases[-1]
    assert oldest.link == "https://github.com/olivierlacan/keep-a-changelog/releases/tag/v0.0.1"
    assert len(oldest.changes.added) == 3


def test_project_changelog_parses(parse_text) -> None:
    source = (REPO_ROOT / "CHANGELOG.md").read_text(encoding="utf-8")

    changelog, diagnostics = parse_text(source)

    assert not diagnostics
    (release,) = changelog.releases
    assert release.is_unreleased
    assert _texts(release.changes.added)[-1] == "check, show and scan commands."


# State machine transitions


def _accumulator() -> tuple[_Accumulator, Diagnostics]:
    diagnostics = Diagnostics()
    return _Accumulator(file_id=FileId(0), on_diagnostic=diagnostics), diagnostics


HEADING_START = Event.start(Tag.heading(2))
HEADING_END = Event.end(Tag.heading(2))
HEADING_SPAN = Span(0, 23)


def test_idle_ignores_everything_but_level_two_headings() -> None:
    accumulator, _ = _accumulator()

    assert process(IDLE, Event.start(Tag.heading(3)), Span(0, 5), accumulator) is IDLE
    assert process(IDLE, Event.plain("text"), Span(0, 4), accumulator) is IDLE

    state = process(IDLE, HEADING_START, HEADING_SPAN, accumulator)
    assert isinstance(state, ReadingHeader)
    assert state.buffer == [(HEADING_START, HEADING_SPAN)]


def test_reading_header_buffers_until_heading_end() -> None:
    accumulator, diagnostics = _accumulator()
    state = process(IDLE, HEADING_START, HEADING_SPAN, accumulator)

    state = process(state, Event.plain("[1.2.3] - 2020-01-02"), Span(3, 23), accumulator)
    assert isinstance(state, ReadingHeader)
    assert len(state.buffer) == 2

    state = process(state, HEADING_END, HEADING_SPAN, accumulator)
    assert isinstance(state, ReadingRelease)
    assert state.release.header.version == Version.parse("1.2.3")
    assert accumulator.releases == []
    assert not diagnostics


def test_reading_header_failure_returns_to_idle() -> None:
    accumulator, diagnostics = _accumulator()
    state = process(IDLE, HEADING_START, Span(0, 8), accumulator)
    state = process(state, Event.plain("bogus"), Span(3, 8), accumulator)

    state = process(state, HEADING_END, Span(0, 8), accumulator)

    assert state is IDLE
    assert [diagnostic.span for diagnostic in diagnostics] == [Span(3, 8)]


def test_next_heading_finalizes_release() -> None:
    accumulator, _ = _accumulator()
    state = process(IDLE, HEADING_START, HEADING_SPAN, accumulator)
    state = process(state, Event.plain("Unreleased"), Span(3, 13), accumulator)
    state = process(state, HEADING_END, HEADING_SPAN, accumulator)
    state = process(state, Event.plain("body"), Span(25, 29), accumulator)

    state = process(state, HEADING_START, Span(31, 40), accumulator)

    assert isinstance(state, ReadingHeader)
    (release,) = accumulator.releases
    assert release.is_unreleased
    assert release.span == Span(0, 29)


def test_flush_handles_each_state() -> None:
    accumulator, diagnostics = _accumulator()
    flush(IDLE, accumulator)
    assert accumulator.releases == []

    header = ReadingHeader(buffer=[(HEADING_START, HEADING_SPAN), (Event.plain("Unreleased"), Span(3, 13))])
    flush(header, accumulator)
    assert len(accumulator.releases) == 1

    broken = ReadingHeader(buffer=[(HEADING_START, HEADING_SPAN), (Event.plain("??"), Span(3, 5))])
    flush(broken, accumulator)
    assert len(accumulator.releases) == 1
    assert len(diagnostics) == 1


def test_events_inside_release_are_ignored_when_not_items() -> None:
    accumulator, _ = _accumulator()
    state = process(IDLE, HEADING_START, HEADING_SPAN, accumulator)
    state = process(state, Event.plain("Unreleased"), Span(3, 13), accumulator)
    state = process(state, HEADING_END, HEADING_SPAN, accumulator)

    for event in (Event(EventKind.RULE), Event.html("<br>"), Event.start(Tag(TagKind.TABLE))):
        state = process(state, event, Span(30, 34), accumulator)

    flush(state, accumulator)
    (release,) = accumulator.releases
    assert release.changes.is_empty()


def test_level_two_heading_inside_container_is_not_a_boundary() -> None:
    accumulator, _ = _accumulator()
    state = process(IDLE, HEADING_START, HEADING_SPAN, accumulator)
    state = process(state, Event.plain("Unreleased"), Span(3, 13), accumulator)
    state = process(state, HEADING_END, HEADING_SPAN, accumulator)

    state = process(state, Event.start(Tag(TagKind.BLOCK_QUOTE)), Span(25, 40), accumulator)
    state = process(state, HEADING_START, Span(27, 40), accumulator)
    assert isinstance(state, ReadingRelease)
    assert accumulator.releases == []

    state = process(state, HEADING_END, Span(27, 40), accumulator)
    state = process(state, Event.end(Tag(TagKind.BLOCK_QUOTE)), Span(25, 40), accumulator)
    assert accumulator.at_top_level

    state = process(state, HEADING_START, Span(42, 50), accumulator)
    assert isinstance(state, ReadingHeader)
    assert len(accumulator.releases) == 1


def test_idle_ignores_headings_in_list_items() -> None:
    accumulator, _ = _accumulator()

    state = process(IDLE, Event.start(Tag(TagKind.ITEM)), Span(0, 12), accumulator)
    assert process(state, HEADING_START, Span(2, 12), accumulator) is IDLE
