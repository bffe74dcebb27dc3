"""Tests for the workforce-wide break concurrency check."""
import pytest

from conftest import make_record
from shift_dimensioning.breaks import schedule_all
from shift_dimensioning.distribution import (
    break_cap,
    build_snapshots,
    latest_records,
    occupancy_frame,
    occupancy_histogram,
    validate,
)
from shift_dimensioning.models import BreakAssignment, BreakKind, WorkforceSnapshot


def _snapshot(starts, day="2025-05-08", size=None):
    records = [
        make_record(agent=f"Agent {i}", day=day, start=start, end="23:59")
        for i, start in enumerate(starts)
    ]
    schedules, _ = schedule_all(records)
    return build_snapshots(records, schedules, {day: size} if size else None)[day]


class TestBreakCap:
    @pytest.mark.parametrize("size, expected", [(10, 3), (20, 7), (3, 1), (1, 1), (0, 1)])
    def test_default_ratio(self, size, expected):
        assert break_cap(size) == expected

    def test_exact_fraction_is_not_rounded_down(self):
        assert break_cap(100, 0.35) == 35

    def test_full_ratio(self):
        assert break_cap(7, 1.0) == 7


class TestValidate:
    def test_ten_agents_same_start_violates(self):
        verdict = validate(_snapshot(["08:00"] * 10))
        assert not verdict.valid
        assert verdict.violating_minute == "10:00"
        assert verdict.occupancy == 10
        assert verdict.cap == 3
        assert "10:00" in verdict.message

    @pytest.mark.parametrize("overlapping, valid", [(4, False), (3, True)])
    def test_overlap_against_cap_of_ten(self, overlapping, valid):
        staggered = ["13:00", "13:30", "14:00", "14:30", "15:00", "15:30", "16:00"]
        starts = ["08:00"] * overlapping + staggered[: 10 - overlapping]
        verdict = validate(_snapshot(starts))
        assert verdict.valid is valid
        assert verdict.cap == 3
        if not valid:
            assert verdict.occupancy == 4
            assert verdict.violating_minute == "10:00"

    def test_staggered_starts_pass(self):
        starts = ["08:00"] * 3 + ["08:30"] * 3 + ["09:00"] * 2 + ["09:30"] * 2
        verdict = validate(_snapshot(starts))
        assert verdict.valid
        assert verdict.violating_minute is None
        assert verdict.occupancy == 3

    def test_reports_earliest_violation(self):
        starts = ["09:00"] * 3 + ["08:00"] * 2
        verdict = validate(_snapshot(starts), cap_ratio=0.2)
        assert verdict.violating_minute == "10:00"
        assert verdict.occupancy == 2

    def test_full_cap_never_violates(self):
        verdict = validate(_snapshot(["08:00"] * 10), cap_ratio=1.0)
        assert verdict.valid

    def test_explicit_workforce_size(self):
        snapshot = _snapshot(["08:00"] * 3, size=100)
        assert snapshot.workforce_size == 100
        assert validate(snapshot).valid

    def test_empty_snapshot_is_valid(self):
        verdict = validate(WorkforceSnapshot("2025-05-08", (), ()))
        assert verdict.valid
        assert verdict.cap == 1


def test_histogram_wraps_past_midnight() -> None:
    assignment = BreakAssignment("Ana", "2025-05-08", BreakKind.SECOND, "23:50", 20)
    histogram = occupancy_histogram([assignment])
    assert histogram[23 * 60 + 59] == 1
    assert histogram[0] == 1
    assert histogram[9] == 1
    assert 10 not in histogram
    assert len(histogram) == 20


def test_break_end_wraps_past_midnight() -> None:
    assert BreakAssignment("Ana", "2025-05-08", BreakKind.SECOND, "23:50", 20).end == "00:10"
    assert BreakAssignment("Ana", "2025-05-08", BreakKind.FIRST, "10:00", 10).end == "10:10"


def test_build_snapshots_groups_by_date_and_drops_unscheduled() -> None:
    records = [
        make_record(agent="Ana", day="2025-05-09"),
        make_record(agent="Bruno", day="2025-05-08"),
        make_record(agent="Carla", day="2025-05-08", motive="vacaciones"),
        make_record(agent="Bruno", day="2025-05-08", start="09:00", end="15:00"),
    ]
    schedules, _ = schedule_all(records)
    snapshots = build_snapshots(records, schedules)

    assert list(snapshots) == ["2025-05-08", "2025-05-09"]
    may_8 = snapshots["2025-05-08"]
    assert [r.agent_name for r in may_8.records] == ["Bruno"]
    assert may_8.records[0].start_time == "09:00"
    assert [a.start for a in may_8.assignments] == ["11:00", "13:00"]
    with pytest.raises(AttributeError):
        may_8.date = "2025-05-10"


def test_latest_records_ignores_motive() -> None:
    working = make_record(agent="Ana")
    vacation = make_record(agent="Ana", motive="vacaciones")
    other_day = make_record(agent="Ana", day="2025-05-09")

    assert latest_records([working, vacation, other_day]) == [vacation, other_day]

    schedules, _ = schedule_all([working, vacation])
    assert build_snapshots([working, vacation], schedules) == {}


def test_occupancy_frame() -> None:
    frame = occupancy_frame(_snapshot(["08:00", "08:05"]))
    assert list(frame.columns) == ["minute", "time", "occupancy"]
    assert frame.iloc[0].tolist() == [600, "10:00", 1]
    assert frame["occupancy"].max() == 2
