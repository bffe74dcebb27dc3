"""Heuristic extraction used when the inference service cannot help.

Only a rough picture is recovered: dates mentioned in the headers give the
periods and covered dates, and up to :data:`MAX_DEGRADED_ROWS` rows are
read assuming the usual column order of a dimensioning export.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import NormalizationError
from .extractor import CUTOFF_DAY, cell_text, fold, normalize_motive
from .models import NORMAL_SHIFT, DimensioningPeriod, RowShape, StructuredExtraction
from .timeparse import expand_year, month_name, normalize_date, normalize_time, weekday_kind

logger = logging.getLogger(__name__)

MAX_DEGRADED_ROWS = 50

# column order of a typical export: agent, supervisor, skill, date, start, end, motive
POSITIONAL_COLUMNS = {"agent": 0, "date": 3, "start": 4, "end": 5, "motive": 6}

KEYED_ALIASES = {
    "agent": ("agent", "asesor", "nombre", "nombreasesor", "name"),
    "date": ("date", "fecha", "turnofecha"),
    "start": ("start", "inicio", "horainicio"),
    "end": ("end", "fin", "horafin"),
    "motive": ("motive", "motivo", "reason"),
}

_FULL_DATE_RE = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})")
_WEEKDAY_DATE_RE = re.compile(
    r"(lunes|martes|miercoles|jueves|viernes|sabado|domingo"
    r"|monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
    r"\s*(\d{1,2})[/-](\d{1,2})(?:[/-](\d{2,4}))?"
)


def header_date(header: Any, default_year: int) -> Optional[Tuple[int, int, int]]:
    """``(year, month, day)`` for a header such as ``Lunes 05/05`` or ``05/05/2025``."""

    text = fold(cell_text(header))
    if not text:
        return None

    match = _WEEKDAY_DATE_RE.search(text)
    if match:
        day, month = int(match.group(2)), int(match.group(3))
        year = expand_year(int(match.group(4))) if match.group(4) else default_year
    else:
        match = _FULL_DATE_RE.search(text)
        if not match:
            return None
        day, month, year = int(match.group(1)), int(match.group(2)), expand_year(int(match.group(3)))

    if not 1 <= month <= 12 or not 1 <= day <= 31:
        return None
    return year, month, day


def _keyed_value(row: Dict[str, Any], field: str) -> Any:
    folded = {fold(key).replace(" ", "").replace("_", ""): value for key, value in row.items()}
    for alias in KEYED_ALIASES[field]:
        if alias in folded:
            return folded[alias]
    return None


def _row_fields(row: Any) -> Dict[str, Any]:
    if isinstance(row, dict):
        return {field: _keyed_value(row, field) for field in KEYED_ALIASES}
    return {
        field: row[index] if index < len(row) else None
        for field, index in POSITIONAL_COLUMNS.items()
    }


def _reconstruct_shift(row: Any, default_year: int, cutoff_day: int) -> Optional[Dict[str, Any]]:
    fields = _row_fields(row)
    agent = cell_text(fields["agent"])
    if not agent or normalize_motive(fields["motive"]) != NORMAL_SHIFT:
        return None

    shift_date = normalize_date(fields["date"], default_year=default_year)
    start = normalize_time(fields["start"])
    end = normalize_time(fields["end"])
    if isinstance(shift_date, NormalizationError) or not start or not end:
        return None
    if int(shift_date[8:10]) < cutoff_day:
        return None

    return {
        "agent": agent,
        "date": shift_date,
        "dayType": weekday_kind(shift_date).value,
        "start": start,
        "end": end,
        "shift": f"{start} a {end}",
        "motive": NORMAL_SHIFT,
    }


def degraded_extraction(
    rows: RowShape,
    filename: Optional[str],
    period: DimensioningPeriod,
    *,
    reason: str = "inference unavailable",
    cutoff_day: int = CUTOFF_DAY,
) -> StructuredExtraction:
    """Build a minimal :class:`StructuredExtraction` without the model."""

    logger.warning("Degraded extraction for %s: %s", filename or "<workbook>", reason)

    covered: List[str] = []
    periods: Dict[Tuple[int, int], Dict[str, Any]] = {}
    for header in rows.headers:
        found = header_date(header, period.year)
        if found is None:
            continue
        year, month, day = found
        iso = normalize_date(f"{year:04d}-{month:02d}-{day:02d}")
        if isinstance(iso, NormalizationError):
            continue
        if iso not in covered:
            covered.append(iso)
        periods.setdefault(
            (year, month), {"month": month, "year": year, "monthName": month_name(month)}
        )

    if not periods:
        periods[(period.year, period.month)] = {
            "month": period.month,
            "year": period.year,
            "monthName": period.month_name,
        }

    data_rows: Sequence[Any] = rows.rows
    shifts = []
    for row in data_rows[:MAX_DEGRADED_ROWS]:
        shift = _reconstruct_shift(row, period.year, cutoff_day)
        if shift is not None:
            shifts.append(shift)

    statistics = {
        "totalAgents": len(data_rows),
        "totalShifts": len(shifts),
        "validShifts": len(shifts),
        "invalidShifts": 0,
        "invalidReasons": [f"Degraded processing: {reason}"],
        "recommendations": [
            "Check that the file follows the expected dimensioning layout",
            "Simplify the sheet structure so the column headers can be detected",
        ],
        "processing": "degraded",
        "reason": reason,
    }

    return StructuredExtraction(
        periods=list(periods.values()),
        shifts=shifts,
        covered_dates=[{"date": iso, "dayType": weekday_kind(iso).value} for iso in covered],
        statistics=statistics,
        degraded=True,
        warnings=[f"Degraded extraction ({reason}); only {len(shifts)} shift(s) recovered"],
    )
