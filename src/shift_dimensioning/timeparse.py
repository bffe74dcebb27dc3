"""Canonicalisation of dates and clock times found in dimensioning files.

Every public ``normalize_*`` helper returns either the canonical string
(``YYYY-MM-DD`` for dates, ``HH:MM`` for times) or a
:class:`~shift_dimensioning.errors.NormalizationError` value. Nothing here
raises on bad input: callers treat a failed classification as "skip this
record", never as a reason to abort the batch.
"""
from __future__ import annotations

import math
import numbers
import re
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Union

import pandas as pd

from .errors import NormalizationError
from .models import MINUTES_PER_DAY, DayKind

DateResult = Union[str, NormalizationError]
TimeResult = Union[str, NormalizationError]

MONTH_NAMES = [
    "Enero", "Febrero", "Marzo", "Abril", "Mayo", "Junio",
    "Julio", "Agosto", "Septiembre", "Octubre", "Noviembre", "Diciembre",
]

WEEKDAY_NUMBERS = {
    "lunes": 0, "martes": 1, "miercoles": 2, "miércoles": 2, "jueves": 3,
    "viernes": 4, "sabado": 5, "sábado": 5, "domingo": 6,
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}

# Excel's serial calendar: day 1 is 1900-01-01 and day 60 is the phantom
# 1900-02-29 inherited from Lotus 1-2-3.
_EXCEL_EPOCH = date(1899, 12, 30)
_EXCEL_PHANTOM_LEAP_DAY = 60
_EXCEL_MAX_SERIAL = 2958465

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[ T]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?)?$")
_NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4}|\d{2})$")
_SERIAL_RE = re.compile(r"^\d{1,7}(?:\.\d+)?$")
_WEEKDAY_TEXT_RE = re.compile(
    r"\b(" + "|".join(sorted(WEEKDAY_NUMBERS, key=len, reverse=True)) + r")\b"
    r"[\s,.:-]*(\d{1,2})[/-](\d{1,2})(?:[/-](\d{4}|\d{2}))?",
    re.IGNORECASE,
)

_TIME_PATTERNS = (
    re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$"),
    re.compile(r"^(\d{1,2})\.(\d{2})$"),
    re.compile(r"^(\d{1,2})h(\d{2})$", re.IGNORECASE),
)
_AMPM_PATTERN = re.compile(
    r"^(\d{1,2}):(\d{2})(?::(\d{2}))?\s*([ap])\.?\s*m\.?$", re.IGNORECASE
)
_CANONICAL_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def expand_year(year: int) -> int:
    """Resolve a two-digit year: 50-99 -> 19xx, 00-49 -> 20xx."""

    if year >= 100:
        return year
    return 1900 + year if year >= 50 else 2000 + year


def _build_date(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def excel_serial_to_date(serial: int) -> Optional[str]:
    """Convert a spreadsheet serial day number into ``YYYY-MM-DD``."""

    if serial < 1 or serial > _EXCEL_MAX_SERIAL or serial == _EXCEL_PHANTOM_LEAP_DAY:
        return None
    if serial < _EXCEL_PHANTOM_LEAP_DAY:
        return (_EXCEL_EPOCH + timedelta(days=serial + 1)).isoformat()
    return (_EXCEL_EPOCH + timedelta(days=serial)).isoformat()


def _parse_iso(text: str) -> Optional[str]:
    match = _ISO_RE.match(text)
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    return _build_date(year, month, day)


def _parse_day_first(text: str) -> Optional[str]:
    match = _NUMERIC_DATE_RE.match(text)
    if not match:
        return None
    first, second, year = match.groups()
    return _build_date(expand_year(int(year)), int(second), int(first))


def _parse_month_first(text: str) -> Optional[str]:
    match = _NUMERIC_DATE_RE.match(text)
    if not match:
        return None
    first, second, year = match.groups()
    return _build_date(expand_year(int(year)), int(first), int(second))


def _parse_serial(text: str) -> Optional[str]:
    if not _SERIAL_RE.match(text):
        return None
    return excel_serial_to_date(int(float(text)))


def _parse_weekday_text(text: str, default_year: Optional[int]) -> Optional[str]:
    match = _WEEKDAY_TEXT_RE.search(text)
    if not match:
        return None
    _, day, month, year = match.groups()
    if year:
        resolved_year = expand_year(int(year))
    else:
        resolved_year = default_year or datetime.now().year
    return _build_date(resolved_year, int(month), int(day))


def normalize_date(value: Any, *, default_year: Optional[int] = None) -> DateResult:
    """Return ``value`` as ``YYYY-MM-DD``.

    Formats are tried in a fixed order: ISO, day-first, month-first,
    spreadsheet serial number and finally free text containing a weekday
    name followed by a day/month pair. The first successful parse wins.
    """

    if _is_missing(value):
        return NormalizationError(value, "empty date")

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return NormalizationError(value, "unrecognised date")
    if isinstance(value, numbers.Real):
        if not math.isfinite(value):
            return NormalizationError(value, "serial out of range")
        result = excel_serial_to_date(int(value))
        return result or NormalizationError(value, "serial out of range")

    text = str(value).strip()
    parsers = (_parse_iso, _parse_day_first, _parse_month_first, _parse_serial)
    for parser in parsers:
        result = parser(text)
        if result:
            return result

    result = _parse_weekday_text(text, default_year)
    if result:
        return result
    return NormalizationError(value, "unrecognised date")


def _format_clock(hours: int, minutes: int, raw: Any) -> TimeResult:
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return NormalizationError(raw, "time out of range")
    return f"{hours:02d}:{minutes:02d}"


def normalize_time(value: Any) -> TimeResult:
    """Return ``value`` as a 24h ``HH:MM`` clock time."""

    if _is_missing(value):
        return NormalizationError(value, "empty time")

    if isinstance(value, datetime):
        return f"{value.hour:02d}:{value.minute:02d}"
    if isinstance(value, time):
        return f"{value.hour:02d}:{value.minute:02d}"
    if isinstance(value, bool):
        return NormalizationError(value, "unrecognised time")
    if isinstance(value, numbers.Real):
        # Spreadsheet cells store clock times as a fraction of a day.
        if 0 <= value < 1:
            total = int(round(value * MINUTES_PER_DAY))
            if total >= MINUTES_PER_DAY:
                return NormalizationError(value, "time out of range")
            return f"{total // 60:02d}:{total % 60:02d}"
        return NormalizationError(value, "unrecognised time")

    text = str(value).strip()
    for pattern in _TIME_PATTERNS:
        match = pattern.match(text)
        if match:
            return _format_clock(int(match.group(1)), int(match.group(2)), value)

    match = _AMPM_PATTERN.match(text)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if not 1 <= hours <= 12:
            return NormalizationError(value, "time out of range")
        meridiem = match.group(4).lower()
        if meridiem == "p" and hours < 12:
            hours += 12
        elif meridiem == "a" and hours == 12:
            hours = 0
        return _format_clock(hours, minutes, value)

    return NormalizationError(value, "unrecognised time")


def is_canonical_time(value: Any) -> bool:
    return isinstance(value, str) and bool(_CANONICAL_TIME_RE.match(value))


def time_to_minutes(value: str) -> Optional[int]:
    """Minutes since midnight for a canonical ``HH:MM`` value."""

    if not is_canonical_time(value):
        return None
    hours, minutes = map(int, value.split(":"))
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    wrapped = minutes % MINUTES_PER_DAY
    return f"{wrapped // 60:02d}:{wrapped % 60:02d}"


def month_name(month: int) -> str:
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month number: {month}")
    return MONTH_NAMES[month - 1]


def weekday_kind(date_str: str) -> DayKind:
    """Classify a canonical date by weekday: Saturday, Sunday or Regular."""

    weekday = datetime.strptime(date_str, "%Y-%m-%d").weekday()
    if weekday == 5:
        return DayKind.SATURDAY
    if weekday == 6:
        return DayKind.SUNDAY
    return DayKind.REGULAR
