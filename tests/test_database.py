"""Tests for the SQLite persistence layer."""
import sqlite3

import pytest

from conftest import make_record
from shift_dimensioning import database
from shift_dimensioning.breaks import OverrideError, schedule_all
from shift_dimensioning.distribution import build_snapshots, validate
from shift_dimensioning.models import BreakKind, DimensioningPeriod, ExtractionReport, IngestionResult

PERIOD = DimensioningPeriod(5, 2025, "Mayo")


@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch):
    monkeypatch.setattr(database, "DB_PATH", tmp_path / "test.db")
    database.init_database()
    yield


def make_result(records, filename="Dimensionamiento_May_2025.xlsx"):
    schedules, _ = schedule_all(records)
    snapshots = build_snapshots(records, schedules)
    return IngestionResult(
        filename=filename,
        period=PERIOD,
        records=list(records),
        snapshots=snapshots,
        verdicts={day: validate(snapshot) for day, snapshot in snapshots.items()},
        report=ExtractionReport(period=PERIOD),
    )


def test_replace_snapshots_stores_records_and_breaks() -> None:
    result = make_result(
        [
            make_record(agent="Ana", start="08:00", end="14:00"),
            make_record(agent="Bruno", start="09:00", end="13:00"),
            make_record(agent="Carla", motive="vacaciones"),
        ]
    )

    file_id = database.replace_snapshots(result)

    assert file_id == 1
    assert database.list_dates() == ["2025-05-08"]
    assert [r.agent_name for r in database.list_shift_records("2025-05-08")] == ["Ana", "Carla", "Bruno"]
    breaks = database.list_breaks_by_date("2025-05-08")
    assert [(b.agent_name, b.kind, b.start) for b in breaks] == [
        ("Ana", BreakKind.FIRST, "10:00"),
        ("Bruno", BreakKind.FIRST, "11:00"),
        ("Ana", BreakKind.SECOND, "12:00"),
    ]
    assert breaks[2].end == "12:20"

    files = database.list_ingested_files()
    assert files[0]["filename"] == "Dimensionamiento_May_2025.xlsx"
    assert files[0]["source"] == "extractor"


def test_reingest_replaces_date_wholesale() -> None:
    database.replace_snapshots(
        make_result([make_record(agent="Ana"), make_record(agent="Bruno", day="2025-05-09")])
    )
    database.replace_snapshots(make_result([make_record(agent="Dario", start="07:00", end="13:00")]))

    assert [r.agent_name for r in database.list_shift_records("2025-05-08")] == ["Dario"]
    assert {b.agent_name for b in database.list_breaks_by_date("2025-05-08")} == {"Dario"}
    # dates not in the new file are untouched
    assert [r.agent_name for r in database.list_shift_records("2025-05-09")] == ["Bruno"]
    assert len(database.list_ingested_files()) == 2


def test_failed_store_rolls_back(monkeypatch) -> None:
    database.replace_snapshots(make_result([make_record(agent="Ana")]))

    def broken_insert(cur, assignments):
        raise sqlite3.IntegrityError("boom")

    monkeypatch.setattr(database, "_insert_breaks", broken_insert)
    with pytest.raises(sqlite3.IntegrityError):
        database.replace_snapshots(make_result([make_record(agent="Bruno")]))

    assert [r.agent_name for r in database.list_shift_records("2025-05-08")] == ["Ana"]
    assert len(database.list_ingested_files()) == 1


def test_later_non_working_duplicate_leaves_no_breaks() -> None:
    records = [make_record(agent="Ana"), make_record(agent="Ana", motive="vacaciones"), make_record(agent="Bruno")]
    result = make_result(records)

    database.replace_snapshots(result)

    stored = {r.agent_name: r.motive for r in database.list_shift_records("2025-05-08")}
    assert stored == {"Ana": "vacaciones", "Bruno": "normal shift"}
    assert database.list_breaks_by_date("2025-05-08", "Ana") == []
    assert [r.agent_name for r in result.snapshots["2025-05-08"].records] == ["Bruno"]


def test_list_breaks_for_one_agent() -> None:
    database.replace_snapshots(make_result([make_record(agent="Ana"), make_record(agent="Bruno")]))
    assert {b.agent_name for b in database.list_breaks_by_date("2025-05-08", "Bruno")} == {"Bruno"}


class TestOverrideBreak:
    @pytest.fixture(autouse=True)
    def stored(self):
        database.replace_snapshots(make_result([make_record(agent="Ana", start="08:00", end="14:00")]))

    def test_time_override(self):
        updated = database.override_break("2025-05-08", "Ana", "first", "10:30")

        assert [(b.kind, b.start, b.overridden) for b in updated] == [
            (BreakKind.FIRST, "10:30", True),
            (BreakKind.SECOND, "12:00", False),
        ]
        stored = database.list_breaks_by_date("2025-05-08", "Ana")
        assert stored[0].start == "10:30"
        assert stored[0].overridden

    def test_not_applicable_removes_break(self):
        updated = database.override_break("2025-05-08", "Ana", BreakKind.SECOND, "N/A")

        assert [b.kind for b in updated] == [BreakKind.FIRST]
        assert [b.kind for b in database.list_breaks_by_date("2025-05-08", "Ana")] == [BreakKind.FIRST]

    def test_unknown_agent(self):
        with pytest.raises(LookupError):
            database.override_break("2025-05-08", "Zoe", "First", "10:30")

    def test_malformed_value(self):
        with pytest.raises(OverrideError):
            database.override_break("2025-05-08", "Ana", "First", "25:00")
        assert database.list_breaks_by_date("2025-05-08", "Ana")[0].start == "10:00"

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            database.override_break("2025-05-08", "Ana", "Third", "10:30")
