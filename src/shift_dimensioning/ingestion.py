"""End-to-end ingestion of one dimensioning file."""
from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .breaks import schedule_all
from .config import Settings
from .distribution import build_snapshots, latest_records, validate
from .errors import ErrorKind, IngestionError, IngestionIssue
from .extractor import (
    SEMANTIC_COLUMNS,
    WorkbookSource,
    extract,
    is_confident,
    load_workbook,
    period_from_filename,
    resolve_period,
    row_to_record,
    rows_for_inference,
)
from .fallback import InferencePipeline, shift_value
from .models import (
    DimensioningPeriod,
    ExtractionReport,
    IngestionResult,
    ShiftRecord,
    StructuredExtraction,
)
from .timeparse import month_name

logger = logging.getLogger(__name__)

_STRUCTURED_FIELDS = {
    "agent": "agent",
    "supervisor": "supervisor",
    "skill": "skill",
    "date": "date",
    "day_type": "dayType",
    "start": "start",
    "end": "end",
    "motive": "motive",
}
_STRUCTURED_COLUMNS = {name: index for index, name in enumerate(SEMANTIC_COLUMNS)}


def _inferred_period(
    extraction: StructuredExtraction,
    filename: Optional[str],
    today: Optional[date],
) -> DimensioningPeriod:
    from_name = period_from_filename(filename)
    if from_name is not None:
        return from_name
    for raw in extraction.periods:
        month, year = raw.get("month"), raw.get("year")
        if isinstance(month, int) and isinstance(year, int) and 1 <= month <= 12:
            return DimensioningPeriod(month, year, month_name(month), "inference")
    return resolve_period(filename, today)


def records_from_extraction(
    extraction: StructuredExtraction,
    period: DimensioningPeriod,
    report: ExtractionReport,
    cutoff_day: int,
) -> List[ShiftRecord]:
    """Run inferred shifts through the same normalisation as spreadsheet rows."""

    records: List[ShiftRecord] = []
    report.rows_seen += len(extraction.shifts)
    for index, shift in enumerate(extraction.shifts, start=1):
        row = [shift_value(shift, _STRUCTURED_FIELDS[name]) for name in SEMANTIC_COLUMNS]
        record = row_to_record(
            row, _STRUCTURED_COLUMNS, period, report, cutoff_day, f"inferred shift {index}"
        )
        if record is not None:
            records.append(record)
    return records


def ingest(
    source: WorkbookSource,
    filename: Optional[str] = None,
    pipeline: Optional[InferencePipeline] = None,
    settings: Optional[Settings] = None,
    today: Optional[date] = None,
    workforce_sizes: Optional[Mapping[str, int]] = None,
) -> IngestionResult:
    """Extract, schedule and validate one dimensioning file.

    Falls back to ``pipeline`` when the column heuristics find nothing.
    Nothing is returned until every date has been scheduled and validated.
    Raises :class:`IngestionError` when the file yields no records, or when
    distribution enforcement is on and a date exceeds the cap.
    """

    settings = settings or Settings()
    filename = filename or getattr(source, "name", None)
    workbook = load_workbook(source, filename)
    name = Path(filename or str(source)).name
    records, report = extract(workbook, name, today=today, cutoff_day=settings.cutoff_day)
    period = report.period or resolve_period(name, today)
    result_source = "extractor"
    degraded = False
    warnings: List[str] = []

    if not is_confident(report) and pipeline is not None:
        logger.info("Heuristic extraction of %s was not confident; using inference", name)
        extraction = pipeline.extract(rows_for_inference(workbook), name, period)
        period = _inferred_period(extraction, name, today)
        inferred_report = ExtractionReport(
            period=period,
            sheets_skipped=dict(report.sheets_skipped),
        )
        records = records_from_extraction(extraction, period, inferred_report, settings.cutoff_day)
        report = inferred_report
        degraded = extraction.degraded
        result_source = "degraded" if degraded else "inference"
        warnings.extend(extraction.warnings)

    if not records:
        raise IngestionError(
            IngestionIssue(
                code=ErrorKind.EMPTY_RESULT,
                message=f"No shift records could be extracted from {name}",
                filename=name,
                detail=report.to_dict(),
            )
        )

    records = latest_records(records)
    schedules, schedule_warnings = schedule_all(records)
    warnings.extend(schedule_warnings)
    snapshots = build_snapshots(records, schedules, workforce_sizes)

    verdicts = {}
    for day, snapshot in snapshots.items():
        verdict = validate(snapshot, settings.break_cap_ratio)
        verdicts[day] = verdict
        if not verdict.valid:
            warnings.append(f"{day}: {verdict.message}")

    invalid: Dict[str, Any] = {day: v.to_dict() for day, v in verdicts.items() if not v.valid}
    if invalid and settings.enforce_distribution:
        raise IngestionError(
            IngestionIssue(
                code=ErrorKind.DISTRIBUTION,
                message=f"Break distribution exceeds the cap on {len(invalid)} date(s)",
                filename=name,
                detail=invalid,
            )
        )

    logger.info(
        "Ingested %s: %d record(s), %d date(s), %d invalid distribution(s)",
        name,
        len(records),
        len(snapshots),
        len(invalid),
    )
    return IngestionResult(
        filename=name,
        period=period,
        records=records,
        snapshots=snapshots,
        verdicts=verdicts,
        report=report,
        degraded=degraded,
        source=result_source,
        warnings=warnings,
    )
