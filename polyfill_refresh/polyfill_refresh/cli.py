from __future__ import annotations

import argparse
import json
import logging
import shlex
import sys
from pathlib import Path

from polyfill_refresh.driver import EntryOutcome, EntryStatus, PolyfillRefresher, RefreshConfig
from polyfill_refresh.errors import ConfigError
from polyfill_refresh.io import ReportFormat, write_report
from polyfill_refresh.mapping import TransformCollector, load_mapping_table


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="polyfill-refresh",
        description="Generate forward-compatibility polyfill classes from an upstream PHP source tree.",
    )
    parser.add_argument(
        "source_root",
        type=Path,
        help="Root of the upstream framework release; source_path entries are relative to it.",
    )
    parser.add_argument(
        "output_root",
        type=Path,
        help="Destination folder for the generated polyfill classes.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("cms6-equivalence.yml"),
        metavar="PATH",
        help="Mapping file with the 'classes' collection (default: cms6-equivalence.yml).",
    )
    parser.add_argument(
        "--match-identities",
        action="store_true",
        help="Also remove notices that mention the class's old or new namespace or name.",
    )
    parser.add_argument(
        "--no-clean",
        action="store_true",
        help="Do not empty the output folder before writing.",
    )
    parser.add_argument(
        "--cleanup-command",
        default=None,
        metavar="CMD",
        help="Optional external command run in the output folder after all files are written.",
    )
    parser.add_argument(
        "--export-removals",
        type=Path,
        default=None,
        metavar="PATH",
        help="Optional path to write a JSON file listing the statements removed per class.",
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=None,
        metavar="PATH",
        help="Optional path to write a per-class run report.",
    )
    parser.add_argument(
        "--report-format",
        type=ReportFormat,
        choices=list(ReportFormat),
        default=ReportFormat.CSV,
        help="Run report format (default: csv).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug details.",
    )
    return parser


def _print_outcome(outcome: EntryOutcome) -> None:
    entry = outcome.entry
    if outcome.status == EntryStatus.SKIPPED:
        print(f"Skipped: {entry.source_path}")
    elif outcome.status == EntryStatus.FAIL_OPEN:
        print(f"Copied unchanged: {entry.source_path} -> {outcome.destination}")
    else:
        print(f"Processed: {entry.source_path} -> {outcome.destination}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    source_root: Path = args.source_root
    output_root: Path = args.output_root
    config_path: Path = args.config
    export_removals: Path | None = args.export_removals
    report: Path | None = args.report
    report_format: ReportFormat = args.report_format

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not source_root.is_dir():
        parser.error(f"Source root not found: {source_root}")

    cleanup_command = tuple(shlex.split(args.cleanup_command)) if args.cleanup_command else ()
    config = RefreshConfig(
        match_identities=args.match_identities,
        clean_output=not args.no_clean,
        cleanup_command=cleanup_command,
    )
    collector = TransformCollector() if export_removals is not None else None

    try:
        table = load_mapping_table(config_path)
        print(f"Loaded {len(table)} class mappings from: {config_path}")
        refresher = PolyfillRefresher(
            table, source_root, output_root, config=config, collector=collector
        )
        result = refresher.refresh(on_entry=_print_outcome)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(
        f"Done. Wrote {result.count(EntryStatus.WRITTEN)} polyfill(s), "
        f"{result.count(EntryStatus.FAIL_OPEN)} copied unchanged, "
        f"{result.count(EntryStatus.SKIPPED)} skipped."
    )

    if export_removals is not None and collector is not None:
        export_removals.parent.mkdir(parents=True, exist_ok=True)
        export_removals.write_text(json.dumps(collector.to_dict(), indent=2))
        print(f"Removals written to: {export_removals}")

    if report is not None:
        write_report(result.to_frame(), report, report_format)
        print(f"Report written to: {report}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
