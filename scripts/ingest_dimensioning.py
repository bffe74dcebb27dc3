"""Command-line ingestion of a dimensioning file.

Prints the extraction report, the break distribution verdict for every
date and any degraded-extraction warnings. With ``--save`` the result
replaces the stored records of the dates it covers.
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from shift_dimensioning import (
    InferenceError,
    IngestionError,
    build_pipeline,
    configure,
    export_to_excel,
    ingest,
    init_database,
    load_settings,
    replace_snapshots,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest a dimensioning file and schedule breaks")
    parser.add_argument("path", type=Path, help="Path to the .xlsx/.xlsm/.csv dimensioning file")
    parser.add_argument(
        "--save",
        action="store_true",
        help="Store the result in the database, replacing the dates it covers",
    )
    parser.add_argument(
        "--no-inference",
        action="store_true",
        help="Never call the inference service, even when an API key is configured",
    )
    parser.add_argument(
        "--export",
        type=Path,
        metavar="XLSX",
        help="Write the break schedule and verdicts to an Excel workbook",
    )
    parser.add_argument(
        "--enforce",
        action="store_true",
        help="Fail when any date exceeds the break concurrency cap",
    )
    parser.add_argument("--verbose", action="store_true", help="Log per-row decisions")
    return parser.parse_args(argv)


def print_report(result) -> None:
    report = result.report
    print(f"File:    {result.filename}")
    print(f"Period:  {result.period.month_name} {result.period.year} (from {result.period.source})")
    print(f"Source:  {result.source}{' (degraded)' if result.degraded else ''}")
    print(f"Sheets:  {', '.join(report.sheets_processed) or '-'}")
    for sheet, missing in report.sheets_skipped.items():
        print(f"  skipped {sheet!r}: missing {', '.join(missing) or 'data rows'}")
    print(
        f"Rows:    {report.rows_seen} read, {report.retained} kept, "
        f"{report.excluded_motive} not scheduled (motive)"
    )
    print(
        f"Skipped: {report.blank_rows} blank, {report.skipped_missing_agent} without agent, "
        f"{report.skipped_invalid_date} bad date, {report.skipped_missing_time} bad time, "
        f"{report.skipped_before_cutoff} before cutoff"
    )

    print("-" * 60)
    for day in result.dates:
        verdict = result.verdicts[day]
        status = "OK " if verdict.valid else "NG "
        size = result.snapshots[day].workforce_size
        print(f"{status} {day}  agents={size:3d}  {verdict.message}")

    if result.warnings:
        print("-" * 60)
        for warning in result.warnings:
            print(f"WARNING: {warning}")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    if args.enforce:
        settings = replace(settings, enforce_distribution=True)

    logging.basicConfig(
        level="DEBUG" if args.verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    pipeline = None if args.no_inference else build_pipeline(settings)

    print("=" * 60)
    print("Dimensioning ingestion")
    print("=" * 60)

    try:
        result = ingest(args.path, pipeline=pipeline, settings=settings)
    except IngestionError as exc:
        print(f"ERROR ({exc.code.value}): {exc}", file=sys.stderr)
        return 1
    except InferenceError as exc:
        print(f"ERROR (inference {exc.kind.value}): {exc.message}", file=sys.stderr)
        return 2

    print_report(result)

    if args.export:
        if export_to_excel(result, args.export):
            print(f"Exported to {args.export}")
        else:
            print(f"Could not export to {args.export}", file=sys.stderr)

    if args.save:
        configure(settings.db_path)
        init_database()
        file_id = replace_snapshots(result)
        print(f"Saved as file #{file_id} in {settings.db_path}")

    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
