"""Workforce-wide concurrency check for scheduled breaks."""
from __future__ import annotations

import logging
from collections import Counter
from fractions import Fraction
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .breaks import AgentKey
from .models import (
    MINUTES_PER_DAY,
    BreakAssignment,
    ShiftRecord,
    ValidationVerdict,
    WorkforceSnapshot,
)
from .timeparse import minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)

DEFAULT_CAP_RATIO = 0.35


def break_cap(workforce_size: int, cap_ratio: float = DEFAULT_CAP_RATIO) -> int:
    """Maximum agents allowed on break in the same minute (never below 1)."""

    return max(1, int(Fraction(str(cap_ratio)) * workforce_size))


def occupancy_histogram(assignments: Iterable[BreakAssignment]) -> Dict[int, int]:
    """Count agents on break for every minute of the day they touch."""

    histogram: Counter[int] = Counter()
    for assignment in assignments:
        start = time_to_minutes(assignment.start)
        if start is None:
            continue
        for offset in range(assignment.duration_minutes):
            histogram[(start + offset) % MINUTES_PER_DAY] += 1
    return dict(histogram)


def validate(snapshot: WorkforceSnapshot, cap_ratio: float = DEFAULT_CAP_RATIO) -> ValidationVerdict:
    """Check that no minute has more agents on break than the cap allows.

    Reports the earliest offending minute rather than the worst one.
    """

    cap = break_cap(snapshot.workforce_size, cap_ratio)
    histogram = occupancy_histogram(snapshot.assignments)

    for minute in sorted(histogram):
        occupancy = histogram[minute]
        if occupancy > cap:
            verdict = ValidationVerdict(False, minutes_to_time(minute), occupancy, cap)
            logger.warning("%s: %s", snapshot.date, verdict.message)
            return verdict

    peak = max(histogram.values(), default=0)
    return ValidationVerdict(True, None, peak, cap)


def latest_records(records: Iterable[ShiftRecord]) -> List[ShiftRecord]:
    """Keep one record per agent and date; a later duplicate replaces an earlier one.

    Motive plays no part in the choice, so a later non-working row hides
    an earlier working one.
    """

    unique: Dict[AgentKey, ShiftRecord] = {}
    for record in records:
        unique[(record.date, record.agent_name)] = record
    return list(unique.values())


def build_snapshots(
    records: Sequence[ShiftRecord],
    schedules: Dict[AgentKey, List[BreakAssignment]],
    workforce_sizes: Optional[Mapping[str, int]] = None,
) -> Dict[str, WorkforceSnapshot]:
    """Group records and their breaks into one immutable snapshot per date.

    The agent name identifies a record within a date; a later duplicate
    replaces an earlier one. ``workforce_sizes`` overrides the head count
    used for the cap on the dates it names.
    """

    workforce_sizes = workforce_sizes or {}

    by_date: Dict[str, List[ShiftRecord]] = {}
    for record in latest_records(records):
        if record.schedulable:
            by_date.setdefault(record.date, []).append(record)

    snapshots: Dict[str, WorkforceSnapshot] = {}
    for day in sorted(by_date):
        day_records = by_date[day]
        assignments = [
            assignment
            for record in day_records
            for assignment in schedules.get((record.date, record.agent_name), [])
        ]
        snapshots[day] = WorkforceSnapshot(
            day, tuple(day_records), tuple(assignments), workforce_sizes.get(day)
        )
    return snapshots


def occupancy_frame(snapshot: WorkforceSnapshot) -> pd.DataFrame:
    """Per-minute occupancy for the minutes that have anyone on break."""

    histogram = occupancy_histogram(snapshot.assignments)
    minutes = sorted(histogram)
    return pd.DataFrame(
        {
            "minute": minutes,
            "time": [minutes_to_time(m) for m in minutes],
            "occupancy": [histogram[m] for m in minutes],
        }
    )
