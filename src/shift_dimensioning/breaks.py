"""Break assignment helpers for agent shifts."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models import (
    MINUTES_PER_DAY,
    SECOND_BREAK_MIN_SHIFT,
    BreakAssignment,
    BreakKind,
    ShiftRecord,
)
from .timeparse import is_canonical_time, minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)

OVERRIDE_NOT_APPLICABLE = "N/A"

AgentKey = Tuple[str, str]


class NotSchedulableError(ValueError):
    """The shift has no usable start/end time."""


class OverrideError(ValueError):
    """A manual break override is not ``HH:MM`` or ``N/A``."""


def shift_duration(start: str, end: str) -> int:
    """Length of a shift in minutes, crossing midnight when ``end < start``."""

    start_min = time_to_minutes(start)
    end_min = time_to_minutes(end)
    if start_min is None or end_min is None:
        raise NotSchedulableError(f"invalid shift bounds {start!r}-{end!r}")
    return (end_min - start_min) % MINUTES_PER_DAY


def _make_break(shift: ShiftRecord, kind: BreakKind, start_min: int) -> BreakAssignment:
    return BreakAssignment(
        agent_name=shift.agent_name,
        date=shift.date,
        kind=kind,
        start=minutes_to_time(start_min + kind.offset_minutes),
        duration_minutes=kind.duration_minutes,
    )


def schedule(shift: ShiftRecord) -> List[BreakAssignment]:
    """Compute the breaks for ``shift`` from its start time.

    The first break always starts two hours in; the second starts four
    hours in and is only given to shifts of at least six hours.
    """

    start_min = time_to_minutes(shift.start_time)
    if start_min is None:
        raise NotSchedulableError(f"{shift.agent_name} on {shift.date}: invalid start {shift.start_time!r}")
    duration = shift_duration(shift.start_time, shift.end_time)

    assignments = [_make_break(shift, BreakKind.FIRST, start_min)]
    if duration >= SECOND_BREAK_MIN_SHIFT:
        assignments.append(_make_break(shift, BreakKind.SECOND, start_min))
    return assignments


def schedule_all(
    shifts: Iterable[ShiftRecord],
) -> Tuple[Dict[AgentKey, List[BreakAssignment]], List[str]]:
    """Schedule every normal shift; collect warnings for the rest."""

    schedules: Dict[AgentKey, List[BreakAssignment]] = {}
    warnings: List[str] = []

    for shift in shifts:
        if not shift.schedulable:
            continue
        try:
            schedules[(shift.date, shift.agent_name)] = schedule(shift)
        except NotSchedulableError as exc:
            logger.warning("Not schedulable: %s", exc)
            warnings.append(f"Breaks not scheduled for {shift.agent_name} on {shift.date}: {exc}")

    return schedules, warnings


def validate_override(value: str) -> Optional[str]:
    """Return the canonical override or ``None`` for ``N/A``."""

    text = value.strip() if isinstance(value, str) else value
    if text == OVERRIDE_NOT_APPLICABLE:
        return None
    if not is_canonical_time(text):
        raise OverrideError(f"Break override must be HH:MM or {OVERRIDE_NOT_APPLICABLE}, got {value!r}")
    return text


def apply_override(
    assignments: Sequence[BreakAssignment],
    kind: BreakKind,
    value: str,
) -> List[BreakAssignment]:
    """Return a new break list with ``kind`` replaced by a manual value.

    ``N/A`` removes that break. Computed breaks of other kinds are kept.
    """

    new_start = validate_override(value)
    result: List[BreakAssignment] = []
    template: Optional[BreakAssignment] = None

    for assignment in assignments:
        if assignment.kind is kind:
            template = assignment
            continue
        result.append(assignment)

    if new_start is not None:
        if template is None and not assignments:
            raise OverrideError("Cannot override a break for a shift without breaks")
        base = template or assignments[0]
        result.append(
            BreakAssignment(
                agent_name=base.agent_name,
                date=base.date,
                kind=kind,
                start=new_start,
                duration_minutes=kind.duration_minutes,
                overridden=True,
            )
        )

    result.sort(key=lambda a: a.kind is BreakKind.SECOND)
    return result
