#!/usr/bin/env python3

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable

from keep_a_changelog.parsing.config import ParsingConfig, load_parsing_config
from keep_a_changelog.parsing.diagnostics import Severity, render_diagnostic
from keep_a_changelog.parsing.export import EXPORT_FORMATS, dump_changelog
from keep_a_changelog.parsing.files import SourceFiles
from keep_a_changelog.parsing.runner import ParseOutcome, parse_changelog_file, scan_changelogs

SEVERITY_CHOICES = [severity.label for severity in Severity]


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a parsing YAML config (default: config/changelog.yaml when present).",
    )
    parser.add_argument(
        "--fail-on",
        choices=SEVERITY_CHOICES,
        default=None,
        help="Lowest diagnostic severity that marks a changelog as failed (default from configuration).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Parse Keep a Changelog documents and report malformed releases.",
        prog="keep-a-changelog",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    check_parser = subcommands.add_parser("check", help="Validate one or more changelog files.")
    check_parser.add_argument("paths", nargs="+", type=Path, help="Changelog files to check.")
    _add_common_arguments(check_parser)

    show_parser = subcommands.add_parser("show", help="Print the parsed model of a changelog.")
    show_parser.add_argument("path", type=Path, help="Changelog file to parse.")
    show_parser.add_argument(
        "--format",
        choices=EXPORT_FORMATS,
        default=None,
        help="Output format (default from configuration, falling back to json).",
    )
    _add_common_arguments(show_parser)

    scan_parser = subcommands.add_parser("scan", help="Scan a directory for changelogs and check them.")
    scan_parser.add_argument(
        "--root",
        type=Path,
        default=Path("."),
        help="Directory to scan for changelogs (defaults to the current directory).",
    )
    scan_parser.add_argument(
        "--suffix",
        action="append",
        default=[],
        help="File suffix to include (e.g. .md). Repeat to supply multiple values.",
    )
    scan_parser.add_argument(
        "--recursive",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Recursively scan subdirectories (default controlled by configuration).",
    )
    scan_parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of changelogs to process during scanning.",
    )
    scan_parser.add_argument(
        "--include",
        action="append",
        dest="include",
        metavar="PATTERN",
        help="Glob pattern relative to the scan root to include. Repeat to supply multiple patterns.",
    )
    scan_parser.add_argument(
        "--exclude",
        action="append",
        dest="exclude",
        metavar="PATTERN",
        help="Glob pattern relative to the scan root to exclude. Repeat to supply multiple patterns.",
    )
    scan_parser.add_argument(
        "--clear-config-include",
        action="store_true",
        help="Ignore include patterns from the parsing config when combining with --include.",
    )
    _add_common_arguments(scan_parser)

    return parser


def check_cli(args: argparse.Namespace, config: ParsingConfig) -> int:
    files = SourceFiles()
    fail_on = _resolve_fail_on(args, config)
    outcomes = [
        parse_changelog_file(path, files=files, fail_on=fail_on, extensions=config.extensions)
        for path in args.paths
    ]
    for outcome in outcomes:
        _emit_outcome(outcome, files)
    return 1 if any(not outcome.succeeded for outcome in outcomes) else 0


def show_cli(args: argparse.Namespace, config: ParsingConfig) -> int:
    files = SourceFiles()
    outcome = parse_changelog_file(
        args.path,
        files=files,
        fail_on=_resolve_fail_on(args, config),
        extensions=config.extensions,
    )
    if outcome.changelog is None:
        _emit_outcome(outcome, files)
        return 1

    for diagnostic in outcome.diagnostics:
        print(render_diagnostic(diagnostic, files), file=sys.stderr)

    fmt = args.format
    if fmt is None:
        fmt = config.output_format if config.output_format in EXPORT_FORMATS else "json"
    sys.stdout.write(dump_changelog(outcome.changelog, fmt))
    return 0 if outcome.succeeded else 1


def scan_cli(args: argparse.Namespace, config: ParsingConfig) -> int:
    files = SourceFiles()
    suffixes = _merge_cli_sequences(config.scan.suffixes, args.suffix, clear=bool(args.suffix))
    recursive = config.scan.recursive if args.recursive is None else bool(args.recursive)
    include_patterns = _merge_cli_sequences(
        config.scan.include,
        args.include,
        clear=args.clear_config_include,
    )
    exclude_patterns = _merge_cli_sequences(config.scan.exclude, args.exclude, clear=False)

    try:
        outcomes = scan_changelogs(
            args.root,
            files=files,
            suffixes=suffixes,
            recursive=recursive,
            limit=args.limit,
            include_patterns=include_patterns,
            exclude_patterns=exclude_patterns,
            fail_on=_resolve_fail_on(args, config),
            extensions=config.extensions,
        )
    except FileNotFoundError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if not outcomes:
        print(f"No changelogs found under {args.root.expanduser().resolve()} matching the requested filters.")
        return 0
    for outcome in outcomes:
        _emit_outcome(outcome, files)
    return 1 if any(not outcome.succeeded for outcome in outcomes) else 0


def _resolve_fail_on(args: argparse.Namespace, config: ParsingConfig) -> Severity:
    if args.fail_on is not None:
        return Severity.parse(args.fail_on)
    return config.fail_on


def _emit_outcome(outcome: ParseOutcome, files: SourceFiles) -> None:
    if outcome.status == "error":
        message = outcome.error or "Parsing failed"
        print(f"[error] {outcome.source}: {message}", file=sys.stderr)
        return

    for diagnostic in outcome.diagnostics:
        print(render_diagnostic(diagnostic, files), file=sys.stderr)

    releases = len(outcome.changelog.releases) if outcome.changelog is not None else 0
    noun = "release" if releases == 1 else "releases"
    memo = f", {len(outcome.diagnostics)} diagnostic(s)" if outcome.diagnostics else ""
    print(f"[{outcome.status}] {outcome.source}: {releases} {noun}{memo}")


def _merge_cli_sequences(
    config_values: Iterable[str],
    cli_values: Iterable[str] | None,
    *,
    clear: bool,
) -> tuple[str, ...]:
    merged: list[str] = []
    if not clear:
        for value in config_values:
            token = str(value).strip()
            if token:
                merged.append(token)
    if cli_values:
        for value in cli_values:
            token = str(value).strip()
            if token:
                merged.append(token)
    return tuple(dict.fromkeys(merged))


def main(argv: list[str] | None = None) -> int:
    raw_args = sys.argv[1:] if argv is None else argv

    parser = build_parser()
    try:
        args = parser.parse_args(raw_args)
    except argparse.ArgumentError as exc:
        parser.error(str(exc))

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = load_parsing_config(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if args.command == "check":
        return check_cli(args, config)
    if args.command == "show":
        return show_cli(args, config)
    if args.command == "scan":
        return scan_cli(args, config)
    raise ValueError(f"Unsupported command: {args.command}")  # pragma: no cover - argparse guards this


if __name__ == "__main__":
    raise SystemExit(main())
