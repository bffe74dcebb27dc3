"""Heuristic extraction of shift records from dimensioning workbooks."""
from __future__ import annotations

import logging
import re
import unicodedata
from datetime import date
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .errors import ErrorKind, IngestionError, IngestionIssue
from .models import (
    NORMAL_SHIFT,
    DayKind,
    DimensioningPeriod,
    ExtractionReport,
    PositionalRows,
    ShiftRecord,
)
from .timeparse import month_name, normalize_date, normalize_time, weekday_kind

logger = logging.getLogger(__name__)

Workbook = Dict[str, pd.DataFrame]
WorkbookSource = Union[str, Path, IO[bytes]]

CUTOFF_DAY = 5

SEMANTIC_COLUMNS = (
    "agent", "supervisor", "skill", "date", "day_type", "start", "end", "motive",
)

# Each alternative lists tokens that must all appear in the folded header.
# Columns are claimed in this order so the multi-token and more specific
# headers win before the generic ones.
_COLUMN_KEYWORDS: Sequence[Tuple[str, Sequence[Tuple[str, ...]]]] = (
    ("day_type", (("tipo", "dia"), ("day", "type"), ("day", "kind"))),
    ("supervisor", (("supervisor",), ("lider",), ("leader",))),
    ("skill", (("skill",),)),
    ("motive", (("motivo",), ("motive",), ("reason",))),
    ("start", (("inicio",), ("start",))),
    ("end", (("fin",), ("end",))),
    ("date", (("fecha",), ("date",))),
    ("agent", (("asesor",), ("agent",), ("nombre",), ("name",))),
)

_WORKING_TOKENS = ("habil", "working", "business")
_NON_WORKING_TOKENS = ("feriado", "holiday", "non-working", "non working", "nonworking")
_NEGATION_RE = re.compile(r"(?:^|[^a-z])no(?:[^a-z]|$)")

_MONTH_TOKENS = {
    "ene": 1, "jan": 1, "feb": 2, "mar": 3, "abr": 4, "apr": 4, "may": 5,
    "jun": 6, "jul": 7, "ago": 8, "aug": 8, "sep": 9, "set": 9, "oct": 10,
    "nov": 11, "dic": 12, "dec": 12,
}
_NAMED_PERIOD_RE = re.compile(r"(?<![a-z])([a-z]{3,})[\s_.-]+(\d{4})(?!\d)")
_NUMERIC_PERIOD_RE = re.compile(r"(?<!\d)(\d{1,2})[-/_](\d{4})(?!\d)")

_NORMAL_MOTIVES = {"jornada normal", "normal shift", "normal"}


def fold(text: Any) -> str:
    """Lower-case ``text`` and strip accents and surrounding whitespace."""

    decomposed = unicodedata.normalize("NFKD", str(text))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    if value is pd.NaT:
        return ""
    return str(value).strip()


def _is_blank(row: Sequence[Any]) -> bool:
    return all(cell_text(cell) == "" for cell in row)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_workbook(source: WorkbookSource, filename: Optional[str] = None) -> Workbook:
    """Read every sheet of ``source`` into header-less DataFrames.

    ``filename`` is required when ``source`` is a file-like object so the
    format can be chosen from its extension.
    """

    name = filename or (str(source) if isinstance(source, (str, Path)) else None)
    if not name:
        raise ValueError("filename is required when reading from a buffer")
    suffix = Path(name).suffix.lower()

    if suffix in (".xlsx", ".xlsm"):
        sheets = pd.read_excel(source, sheet_name=None, header=None, dtype=object, engine="openpyxl")
        logger.info("Loaded %d sheet(s) from %s: %s", len(sheets), name, ", ".join(sheets))
        return dict(sheets)
    if suffix == ".csv":
        frame = pd.read_csv(
            source,
            sep=None,
            engine="python",
            header=None,
            dtype=object,
            encoding="utf-8-sig",
        )
        return {Path(name).stem: frame}

    raise IngestionError(
        IngestionIssue(
            code=ErrorKind.STRUCTURAL,
            message=f"Unsupported file type: {suffix or '<none>'}",
            filename=Path(name).name,
        )
    )


def frame_rows(frame: pd.DataFrame) -> List[List[Any]]:
    return frame.to_numpy(dtype=object).tolist()


# ---------------------------------------------------------------------------
# Period detection
# ---------------------------------------------------------------------------


def period_from_filename(filename: Optional[str]) -> Optional[DimensioningPeriod]:
    """Derive the target month from tokens such as ``May_2025`` or ``05-2025``."""

    if not filename:
        return None
    folded = fold(Path(filename).name)

    for match in _NAMED_PERIOD_RE.finditer(folded):
        token, year = match.group(1), int(match.group(2))
        for prefix, month in _MONTH_TOKENS.items():
            if token.startswith(prefix):
                return DimensioningPeriod(month, year, month_name(month), "filename")

    match = _NUMERIC_PERIOD_RE.search(folded)
    if match:
        month, year = int(match.group(1)), int(match.group(2))
        if 1 <= month <= 12:
            return DimensioningPeriod(month, year, month_name(month), "filename")
    return None


def current_period(today: Optional[date] = None) -> DimensioningPeriod:
    today = today or date.today()
    return DimensioningPeriod(today.month, today.year, month_name(today.month), "current_date")


def resolve_period(filename: Optional[str], today: Optional[date] = None) -> DimensioningPeriod:
    period = period_from_filename(filename)
    if period is None:
        logger.warning("Could not derive a period from %r; using the current date", filename)
        return current_period(today)
    return period


# ---------------------------------------------------------------------------
# Sheet and column detection
# ---------------------------------------------------------------------------


def _is_non_working_sheet(name: str) -> bool:
    folded = fold(name)
    if any(token in folded for token in _NON_WORKING_TOKENS):
        return True
    return "habil" in folded and bool(_NEGATION_RE.search(folded))


def _is_working_sheet(name: str) -> bool:
    folded = fold(name)
    return any(token in folded for token in _WORKING_TOKENS) and not _is_non_working_sheet(name)


def select_sheets(sheet_names: Sequence[str]) -> List[Tuple[str, str]]:
    """Pick the working-day and non-working-day sheets, or the first sheet."""

    working = next((name for name in sheet_names if _is_working_sheet(name)), None)
    non_working = next((name for name in sheet_names if _is_non_working_sheet(name)), None)

    selected: List[Tuple[str, str]] = []
    if working is not None:
        selected.append((working, "working"))
    if non_working is not None:
        selected.append((non_working, "non_working"))
    if not selected and sheet_names:
        logger.warning("No working/non-working day sheets found; using first sheet %r", sheet_names[0])
        selected.append((sheet_names[0], "working"))
    return selected


def detect_columns(headers: Sequence[Any]) -> Dict[str, int]:
    """Map semantic column names to header indices by keyword match."""

    folded = [fold(cell_text(header)) for header in headers]
    claimed: set[int] = set()
    found: Dict[str, int] = {}

    for column, alternatives in _COLUMN_KEYWORDS:
        for index, header in enumerate(folded):
            if index in claimed or not header:
                continue
            if any(all(token in header for token in tokens) for tokens in alternatives):
                found[column] = index
                claimed.add(index)
                break
    return found


# ---------------------------------------------------------------------------
# Value classification
# ---------------------------------------------------------------------------


def normalize_motive(value: Any) -> str:
    text = fold(cell_text(value))
    if text in _NORMAL_MOTIVES:
        return NORMAL_SHIFT
    return text


def classify_day_type(value: Any, date_str: str) -> DayKind:
    """Map the day-type cell onto :class:`DayKind`.

    Business-day vocabulary ("hábil") is reported as ``Holiday``; that is
    the convention the dimensioning reports are built around.
    """

    text = fold(cell_text(value))
    if not text:
        return weekday_kind(date_str)
    if "sabado" in text or "saturday" in text:
        return DayKind.SATURDAY
    if "domingo" in text or "sunday" in text:
        return DayKind.SUNDAY
    if "habil" in text or "business" in text or "working" in text:
        return DayKind.HOLIDAY
    if "feriado" in text or "holiday" in text:
        return DayKind.HOLIDAY
    return DayKind.REGULAR


def row_to_record(
    row: Sequence[Any],
    columns: Dict[str, int],
    period: DimensioningPeriod,
    report: ExtractionReport,
    cutoff_day: int,
    label: str,
) -> Optional[ShiftRecord]:
    def cell(name: str) -> Any:
        index = columns[name]
        return row[index] if index < len(row) else None

    agent = cell_text(cell("agent"))
    if not agent:
        report.skipped_missing_agent += 1
        logger.debug("%s has no agent; skipping", label)
        return None

    shift_date = normalize_date(cell("date"), default_year=period.year)
    if not shift_date:
        report.skipped_invalid_date += 1
        logger.debug("%s: %s; skipping", label, shift_date)
        return None

    start = normalize_time(cell("start"))
    end = normalize_time(cell("end"))
    if not start or not end:
        report.skipped_missing_time += 1
        logger.debug("%s has an invalid shift time (%s / %s); skipping", label, start, end)
        return None

    if int(shift_date[8:10]) < cutoff_day:
        report.skipped_before_cutoff += 1
        logger.debug("%s dated %s is before day %d; skipping", label, shift_date, cutoff_day)
        return None

    record = ShiftRecord(
        agent_name=agent,
        date=shift_date,
        day_kind=classify_day_type(cell("day_type"), shift_date),
        start_time=start,
        end_time=end,
        motive=normalize_motive(cell("motive")),
        supervisor=cell_text(cell("supervisor")),
        skill=cell_text(cell("skill")),
    )
    report.retained += 1
    if not record.schedulable:
        report.excluded_motive += 1
    return record


def extract(
    workbook: Workbook,
    filename: Optional[str] = None,
    *,
    today: Optional[date] = None,
    cutoff_day: int = CUTOFF_DAY,
) -> Tuple[List[ShiftRecord], ExtractionReport]:
    """Extract shift records from every relevant sheet of ``workbook``.

    Sheets missing a required column are skipped and listed in the report;
    rows that cannot be classified are counted and skipped. Only an empty
    workbook raises.
    """

    period = resolve_period(filename, today)
    report = ExtractionReport(period=period)
    logger.info("Extracting %s for period %s %d", filename or "<workbook>", period.month_name, period.year)

    if not workbook:
        raise IngestionError(
            IngestionIssue(
                code=ErrorKind.STRUCTURAL,
                message="The file contains no sheets",
                filename=filename,
            )
        )

    records: List[ShiftRecord] = []
    for sheet_name, sheet_kind in select_sheets(list(workbook)):
        rows = frame_rows(workbook[sheet_name])
        data_rows = rows[1:]
        report.rows_seen += len(data_rows)

        if not data_rows:
            logger.warning("Sheet %r has no data rows; skipping", sheet_name)
            report.sheets_skipped[sheet_name] = []
            continue

        columns = detect_columns(rows[0])
        missing = [name for name in SEMANTIC_COLUMNS if name not in columns]
        if missing:
            logger.warning("Sheet %r is missing columns %s; skipping", sheet_name, ", ".join(missing))
            report.sheets_skipped[sheet_name] = missing
            report.skipped_missing_column += len(data_rows)
            continue

        logger.info("Processing sheet %r (%s days, %d rows)", sheet_name, sheet_kind, len(data_rows))
        report.sheets_processed.append(sheet_name)
        for offset, row in enumerate(data_rows, start=2):
            if _is_blank(row):
                report.blank_rows += 1
                continue
            record = row_to_record(
                row, columns, period, report, cutoff_day, f"{sheet_name} row {offset}"
            )
            if record is not None:
                records.append(record)

    logger.info(
        "Extracted %d record(s) from %d sheet(s); %d skipped sheet(s)",
        len(records),
        len(report.sheets_processed),
        len(report.sheets_skipped),
    )
    return records, report


def is_confident(report: ExtractionReport) -> bool:
    """Whether the heuristic extraction found usable structure."""

    return bool(report.sheets_processed) and report.retained > 0


def rows_for_inference(workbook: Workbook) -> PositionalRows:
    """The primary sheet as a positional row shape for the fallback pipeline."""

    selected = select_sheets(list(workbook))
    if not selected:
        return PositionalRows(header=(), rows=())
    rows = frame_rows(workbook[selected[0][0]])
    if not rows:
        return PositionalRows(header=(), rows=())
    return PositionalRows(
        header=tuple(cell_text(cell) for cell in rows[0]),
        rows=tuple(tuple(row) for row in rows[1:] if not _is_blank(row)),
    )
