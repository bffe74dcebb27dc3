"""Domain model definitions for the dimensioning ingestion engine."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

NORMAL_SHIFT = "normal shift"

MINUTES_PER_DAY = 24 * 60

FIRST_BREAK_OFFSET = 120
SECOND_BREAK_OFFSET = 240
FIRST_BREAK_MINUTES = 10
SECOND_BREAK_MINUTES = 20
SECOND_BREAK_MIN_SHIFT = 360


class DayKind(str, Enum):
    HOLIDAY = "Holiday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"
    REGULAR = "Regular"


class BreakKind(str, Enum):
    FIRST = "First"
    SECOND = "Second"

    @property
    def duration_minutes(self) -> int:
        return FIRST_BREAK_MINUTES if self is BreakKind.FIRST else SECOND_BREAK_MINUTES

    @property
    def offset_minutes(self) -> int:
        return FIRST_BREAK_OFFSET if self is BreakKind.FIRST else SECOND_BREAK_OFFSET


@dataclass(frozen=True, slots=True)
class DimensioningPeriod:
    """Month/year a dimensioning file covers."""

    month: int
    year: int
    month_name: str
    source: str = "filename"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ShiftRecord:
    """One agent's working interval for one calendar date."""

    agent_name: str
    date: str
    day_kind: DayKind
    start_time: str
    end_time: str
    motive: str
    supervisor: str = ""
    skill: str = ""

    @property
    def schedulable(self) -> bool:
        return self.motive == NORMAL_SHIFT

    @property
    def shift_label(self) -> str:
        return f"{self.start_time} a {self.end_time}"

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["day_kind"] = self.day_kind.value
        return payload


@dataclass(slots=True)
class BreakAssignment:
    """A scheduled break belonging to exactly one shift record."""

    agent_name: str
    date: str
    kind: BreakKind
    start: str
    duration_minutes: int
    overridden: bool = False

    @property
    def end(self) -> str:
        hours, minutes = map(int, self.start.split(":"))
        total = (hours * 60 + minutes + self.duration_minutes) % MINUTES_PER_DAY
        return f"{total // 60:02d}:{total % 60:02d}"

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["kind"] = self.kind.value
        payload["end"] = self.end
        return payload


@dataclass(frozen=True, slots=True)
class WorkforceSnapshot:
    """All shifts and breaks of one date; the unit of distribution validation."""

    date: str
    records: Tuple[ShiftRecord, ...]
    assignments: Tuple[BreakAssignment, ...]
    size_override: Optional[int] = None

    @property
    def workforce_size(self) -> int:
        if self.size_override is not None:
            return self.size_override
        return len(self.records)


@dataclass(frozen=True, slots=True)
class ValidationVerdict:
    valid: bool
    violating_minute: Optional[str]
    occupancy: int
    cap: int

    @property
    def message(self) -> str:
        if self.valid:
            return f"Break distribution within cap (peak {self.occupancy} of {self.cap} allowed)"
        return (
            f"At {self.violating_minute} there are {self.occupancy} agents on break, "
            f"exceeding the maximum of {self.cap}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ExtractionReport:
    """Counters describing what the extractor did with each row."""

    rows_seen: int = 0
    blank_rows: int = 0
    skipped_missing_column: int = 0
    skipped_missing_agent: int = 0
    skipped_invalid_date: int = 0
    skipped_missing_time: int = 0
    skipped_before_cutoff: int = 0
    excluded_motive: int = 0
    retained: int = 0
    sheets_processed: List[str] = field(default_factory=list)
    sheets_skipped: Dict[str, List[str]] = field(default_factory=dict)
    period: Optional[DimensioningPeriod] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["period"] = self.period.to_dict() if self.period else None
        return payload


@dataclass
class StructuredExtraction:
    """Shape returned by the inference fallback pipeline."""

    periods: List[Dict[str, Any]]
    shifts: List[Dict[str, Any]]
    covered_dates: List[Dict[str, Any]]
    statistics: Dict[str, Any]
    degraded: bool = False
    attempts: int = 0
    warnings: List[str] = field(default_factory=list)
    history: List[Tuple[Any, int]] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Row shapes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PositionalRows:
    """Header row plus data rows addressed by column index."""

    header: Tuple[Any, ...]
    rows: Tuple[Tuple[Any, ...], ...]
    kind: str = "positional"

    @property
    def headers(self) -> List[str]:
        return [str(h).strip() if h is not None else "" for h in self.header]


@dataclass(frozen=True, slots=True)
class KeyedRows:
    """Data rows addressed by column name."""

    rows: Tuple[Dict[str, Any], ...]
    kind: str = "keyed"

    @property
    def headers(self) -> List[str]:
        return [str(key) for key in self.rows[0].keys()] if self.rows else []


RowShape = Union[PositionalRows, KeyedRows]


@dataclass
class IngestionResult:
    """Everything one ingestion run produced for its collaborators."""

    filename: str
    period: DimensioningPeriod
    records: List[ShiftRecord]
    snapshots: Dict[str, WorkforceSnapshot]
    verdicts: Dict[str, ValidationVerdict]
    report: ExtractionReport
    degraded: bool = False
    source: str = "extractor"
    warnings: List[str] = field(default_factory=list)

    @property
    def assignments(self) -> List[BreakAssignment]:
        return [a for snapshot in self.snapshots.values() for a in snapshot.assignments]

    @property
    def dates(self) -> Sequence[str]:
        return sorted(self.snapshots)

    @property
    def all_valid(self) -> bool:
        return all(verdict.valid for verdict in self.verdicts.values())
