"""Configuration helpers for changelog parsing workflows."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml
from jsonschema import ValidationError, validate

from keep_a_changelog import paths
from . import utils
from .diagnostics import Severity
from .events import DEFAULT_EXTENSIONS, KNOWN_EXTENSIONS

_DEFAULT_SCAN_SUFFIXES = (".md", ".markdown")
_DEFAULT_SCAN_INCLUDE = ("*changelog*", "*changes*")
_OUTPUT_FORMATS = ("text", "json", "yaml")

_STRINGS = {"type": ["array", "string", "null"], "items": {"type": "string"}}

# Shape only; value checks happen in ParsingConfig.from_dict
CONFIG_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "fail_on": {"type": "string"},
        "extensions": _STRINGS,
        "output_format": {"type": "string"},
        "scan": {
            "type": ["object", "null"],
            "additionalProperties": False,
            "properties": {
                "suffixes": _STRINGS,
                "recursive": {"type": "boolean"},
                "include": _STRINGS,
                "exclude": _STRINGS,
            },
        },
    },
}


@dataclass(slots=True)
class ScanConfig:
    suffixes: tuple[str, ...] = _DEFAULT_SCAN_SUFFIXES
    recursive: bool = True
    include: tuple[str, ...] = _DEFAULT_SCAN_INCLUDE
    exclude: tuple[str, ...] = ()


@dataclass(slots=True)
class ParsingConfig:
    fail_on: Severity = Severity.ERROR
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    output_format: str = "text"
    scan: ScanConfig = field(default_factory=ScanConfig)

    @classmethod
    def default(cls) -> "ParsingConfig":
        return cls()

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ParsingConfig":
        fail_on = Severity.parse(str(payload.get("fail_on", Severity.ERROR.label)))
        extensions = _build_extensions(payload.get("extensions", DEFAULT_EXTENSIONS))

        output_format = str(payload.get("output_format", "text")).strip().lower()
        if output_format not in _OUTPUT_FORMATS:
            raise ValueError(
                f"output_format must be one of {', '.join(_OUTPUT_FORMATS)} (got '{output_format}')"
            )

        scan_payload = payload.get("scan") or {}
        if not isinstance(scan_payload, Mapping):
            raise ValueError("scan must be a mapping")
        scan = _build_scan_config(scan_payload)
        return cls(
            fail_on=fail_on,
            extensions=extensions,
            output_format=output_format,
            scan=scan,
        )


def load_parsing_config(config_path: Path | None) -> ParsingConfig:
    """Load parsing configuration from YAML or fallback to defaults."""

    if config_path is not None:
        resolved = Path(config_path).expanduser()
        if not resolved.exists():
            raise FileNotFoundError(f"Parsing config '{resolved}' does not exist")
        return _load_file(resolved)

    default_path = paths.get_config_file()
    if default_path.exists():
        return _load_file(default_path)

    return ParsingConfig.default()


def _load_file(path: Path) -> ParsingConfig:
    raw = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in parsing config '{path}': {exc}") from exc
    if not isinstance(data, Mapping):
        raise ValueError("Parsing config must be a mapping")

    try:
        validate(instance=dict(data), schema=CONFIG_SCHEMA)
    except ValidationError as exc:
        raise ValueError(f"Parsing config validation failed: {exc.message}") from exc
    return ParsingConfig.from_dict(data)


def _build_extensions(values: Any) -> tuple[str, ...]:
    extensions = tuple(name.lower() for name in utils.normalize_patterns(values))
    unknown = [name for name in extensions if name not in KNOWN_EXTENSIONS]
    if unknown:
        raise ValueError(
            f"Unknown markdown extension(s) {', '.join(unknown)}; "
            f"expected any of {', '.join(KNOWN_EXTENSIONS)}"
        )
    return extensions


def _build_scan_config(payload: Mapping[str, Any]) -> ScanConfig:
    suffixes = utils.normalize_suffixes(
        payload.get("suffixes"),
        default=_DEFAULT_SCAN_SUFFIXES,
    )
    recursive = bool(payload.get("recursive", True))
    if "include" in payload:
        include = utils.normalize_patterns(payload.get("include"))
    else:
        include = _DEFAULT_SCAN_INCLUDE
    exclude = utils.normalize_patterns(payload.get("exclude"))
    return ScanConfig(
        suffixes=suffixes,
        recursive=recursive,
        include=include,
        exclude=exclude,
    )


__all__ = [
    "ParsingConfig",
    "ScanConfig",
    "load_parsing_config",
]
