"""Shared fixtures for changelog parsing tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from keep_a_changelog.parsing.diagnostics import Diagnostics
from keep_a_changelog.parsing.files import SourceFiles
from keep_a_changelog.parsing.models import Changelog
from keep_a_changelog.parsing.parser import parse

DATA_DIR = Path(__file__).resolve().parents[1] / "data"


@pytest.fixture
def files() -> SourceFiles:
    return SourceFiles()


@pytest.fixture
def parse_text(files: SourceFiles) -> Callable[..., tuple[Changelog, Diagnostics]]:
    def _parse(source: str, name: str = "CHANGELOG.md", **kwargs) -> tuple[Changelog, Diagnostics]:
        file_id = files.add(name, source)
        diagnostics = Diagnostics()
        changelog = parse(file_id, source, diagnostics, **kwargs)
        return changelog, diagnostics

    return _parse


@pytest.fixture
def span_text() -> Callable[..., str]:
    def _slice(source: str, span) -> str:
        return source.encode("utf-8")[span.start:span.end].decode("utf-8")

    return _slice
