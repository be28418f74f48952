"""Keep a Changelog parsing primitives."""

from importlib import import_module

from .base import FileId, HeaderError, ParserError, Span
from .events import DEFAULT_EXTENSIONS, Event, EventKind, Tag, TagKind, markdown_events
from .sections import Category, classify_section
from .models import Changelog, Changes, Item, Release, assemble_changelog
from .diagnostics import Diagnostic, Diagnostics, Severity, render_diagnostic
from .files import Location, SourceFiles
from .header import parse_header
from .parser import parse
from .config import ParsingConfig, ScanConfig, load_parsing_config
from .runner import ParseOutcome, parse_changelog_file, scan_changelogs
from .export import changelog_to_dict, dump_changelog

utils = import_module("keep_a_changelog.parsing.utils")

__all__ = [
    "FileId",
    "HeaderError",
    "ParserError",
    "Span",
    "DEFAULT_EXTENSIONS",
    "Event",
    "EventKind",
    "Tag",
    "TagKind",
    "markdown_events",
    "Category",
    "classify_section",
    "Changelog",
    "Changes",
    "Item",
    "Release",
    "assemble_changelog",
    "Diagnostic",
    "Diagnostics",
    "Severity",
    "render_diagnostic",
    "Location",
    "SourceFiles",
    "parse_header",
    "parse",
    "ParsingConfig",
    "ScanConfig",
    "load_parsing_config",
    "ParseOutcome",
    "parse_changelog_file",
    "scan_changelogs",
    "changelog_to_dict",
    "dump_changelog",
    "utils",
]
