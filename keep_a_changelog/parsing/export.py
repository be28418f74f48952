"""Plain-data exports of a parsed changelog."""

from __future__ import annotations

import json
from typing import Any

import yaml

from .base import Span
from .models import Changelog, Item, Release
from .sections import Category

EXPORT_FORMATS = ("json", "yaml")


def changelog_to_dict(changelog: Changelog) -> dict[str, Any]:
    """Convert a ``Changelog`` into JSON/YAML-friendly primitives."""

    return {
        "span": _span(changelog.span),
        "releases": [release_to_dict(release) for release in changelog.releases],
    }


def release_to_dict(release: Release) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "version": str(release.version) if release.version is not None else None,
        "date": release.date.isoformat() if release.date is not None else None,
        "span": _span(release.span),
    }
    if release.link is not None:
        payload["link"] = release.link
    if release.yanked:
        payload["yanked"] = True
    payload["changes"] = {
        category.value: [_item(item) for item in release.changes.for_category(category)]
        for category in Category
    }
    return payload


def dump_changelog(changelog: Changelog, fmt: str = "json") -> str:
    """Render the exported changelog as ``json`` or ``yaml`` text."""

    payload = changelog_to_dict(changelog)
    if fmt == "json":
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported export format '{fmt}' (expected one of: {', '.join(EXPORT_FORMATS)})")


def _item(item: Item) -> dict[str, Any]:
    payload: dict[str, Any] = {"text": item.text(), "span": _span(item.span)}
    if item.children:
        payload["children"] = [_item(child) for child in item.children]
    return payload


def _span(span: Span) -> list[int]:
    return [span.start, span.end]
