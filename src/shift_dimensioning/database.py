"""SQLite access layer for ingested dimensioning data.

Persistence is deliberately thin: the domain objects in
:mod:`shift_dimensioning.models` are written and read back as-is. A date's
records and breaks are always replaced together, inside one transaction.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

from .breaks import apply_override
from .config import DEFAULT_DB_PATH
from .distribution import latest_records
from .models import BreakAssignment, BreakKind, DayKind, IngestionResult, ShiftRecord

__all__ = [
    "DB_PATH",
    "configure",
    "get_connection",
    "init_database",
    "replace_snapshots",
    "list_dates",
    "list_shift_records",
    "list_breaks_by_date",
    "list_ingested_files",
    "override_break",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Database location and connection helpers
# ---------------------------------------------------------------------------

DB_PATH = DEFAULT_DB_PATH


def configure(db_path: Union[str, Path]) -> None:
    """Point the module at another database file."""

    global DB_PATH
    DB_PATH = Path(db_path)


def _ensure_parent_exists() -> None:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)


@contextmanager
def get_connection() -> Iterator[sqlite3.Connection]:
    """Provide a SQLite connection with an automatic row factory."""

    _ensure_parent_exists()
    conn = sqlite3.connect(str(DB_PATH))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


def _fetchall(sql: str, params: Sequence[object] | None = None) -> List[sqlite3.Row]:
    params = params or []
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute(sql, params)
        return cur.fetchall()


# ---------------------------------------------------------------------------
# Schema management
# ---------------------------------------------------------------------------

_FILE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS dimensioning_files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    filename TEXT NOT NULL,
    month INTEGER NOT NULL CHECK(month BETWEEN 1 AND 12),
    year INTEGER NOT NULL,
    month_name TEXT NOT NULL,
    period_source TEXT NOT NULL,
    source TEXT NOT NULL CHECK(source IN ('extractor', 'inference', 'degraded')),
    degraded BOOLEAN DEFAULT 0,
    report_json TEXT,
    ingested_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

_SHIFT_RECORD_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS shift_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    file_id INTEGER NOT NULL REFERENCES dimensioning_files(id),
    date DATE NOT NULL,
    agent_name TEXT NOT NULL,
    supervisor TEXT,
    skill TEXT,
    day_kind TEXT NOT NULL CHECK(day_kind IN ('Holiday', 'Saturday', 'Sunday', 'Regular')),
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    motive TEXT NOT NULL,
    UNIQUE(date, agent_name)
);
"""

_BREAK_ASSIGNMENT_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS break_assignments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date DATE NOT NULL,
    agent_name TEXT NOT NULL,
    kind TEXT NOT NULL CHECK(kind IN ('First', 'Second')),
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    duration_minutes INTEGER NOT NULL,
    overridden BOOLEAN DEFAULT 0,
    UNIQUE(date, agent_name, kind)
);
"""


def init_database() -> None:
    """Create tables if required."""

    with get_connection() as conn:
        cur = conn.cursor()
        cur.executescript(
            "\n".join([_FILE_TABLE_SQL, _SHIFT_RECORD_TABLE_SQL, _BREAK_ASSIGNMENT_TABLE_SQL])
        )
        conn.commit()


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

def _row_to_shift_record(row: sqlite3.Row) -> ShiftRecord:
    return ShiftRecord(
        agent_name=row["agent_name"],
        date=row["date"],
        day_kind=DayKind(row["day_kind"]),
        start_time=row["start_time"],
        end_time=row["end_time"],
        motive=row["motive"],
        supervisor=row["supervisor"] or "",
        skill=row["skill"] or "",
    )


def _row_to_break(row: sqlite3.Row) -> BreakAssignment:
    return BreakAssignment(
        agent_name=row["agent_name"],
        date=row["date"],
        kind=BreakKind(row["kind"]),
        start=row["start_time"],
        duration_minutes=row["duration_minutes"],
        overridden=bool(row["overridden"]),
    )


def _break_kind(value: Union[BreakKind, str]) -> BreakKind:
    if isinstance(value, BreakKind):
        return value
    for kind in BreakKind:
        if kind.value.lower() == str(value).strip().lower():
            return kind
    raise ValueError(f"Unknown break kind: {value!r}")


def _insert_breaks(cur: sqlite3.Cursor, assignments: Sequence[BreakAssignment]) -> None:
    cur.executemany(
        """
        INSERT INTO break_assignments (
            date, agent_name, kind, start_time, end_time, duration_minutes, overridden
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        [
            (a.date, a.agent_name, a.kind.value, a.start, a.end, a.duration_minutes, int(a.overridden))
            for a in assignments
        ],
    )


# ---------------------------------------------------------------------------
# Ingestion results
# ---------------------------------------------------------------------------

def replace_snapshots(result: IngestionResult) -> int:
    """Replace every date ``result`` covers with its records and breaks.

    Returns the id of the stored file row. All dates are replaced in a
    single transaction; on error nothing is changed.
    """

    dates = sorted({record.date for record in result.records} | set(result.snapshots))

    with get_connection() as conn:
        cur = conn.cursor()
        try:
            cur.execute(
                """
                INSERT INTO dimensioning_files (
                    filename, month, year, month_name, period_source, source, degraded, report_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.filename,
                    result.period.month,
                    result.period.year,
                    result.period.month_name,
                    result.period.source,
                    result.source,
                    int(result.degraded),
                    json.dumps(result.report.to_dict(), ensure_ascii=False),
                ),
            )
            file_id = int(cur.lastrowid)

            for day in dates:
                cur.execute("DELETE FROM break_assignments WHERE date = ?", [day])
                cur.execute("DELETE FROM shift_records WHERE date = ?", [day])

            # later duplicates of an agent on the same date win
            unique = latest_records(result.records)
            cur.executemany(
                """
                INSERT INTO shift_records (
                    file_id, date, agent_name, supervisor, skill, day_kind,
                    start_time, end_time, motive
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        file_id, r.date, r.agent_name, r.supervisor, r.skill,
                        r.day_kind.value, r.start_time, r.end_time, r.motive,
                    )
                    for r in unique
                ],
            )
            _insert_breaks(cur, result.assignments)
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            logger.exception("Could not store %s; transaction rolled back", result.filename)
            raise

    logger.info("Stored %s as file %d covering %d date(s)", result.filename, file_id, len(dates))
    return file_id


def list_dates() -> List[str]:
    rows = _fetchall("SELECT DISTINCT date FROM shift_records ORDER BY date")
    return [row["date"] for row in rows]


def list_shift_records(date: str) -> List[ShiftRecord]:
    rows = _fetchall(
        "SELECT * FROM shift_records WHERE date = ? ORDER BY start_time, agent_name",
        [date],
    )
    return [_row_to_shift_record(row) for row in rows]


def list_breaks_by_date(date: str, agent_name: Optional[str] = None) -> List[BreakAssignment]:
    sql = "SELECT * FROM break_assignments WHERE date = ?"
    params: List[object] = [date]
    if agent_name is not None:
        sql += " AND agent_name = ?"
        params.append(agent_name)
    sql += " ORDER BY start_time, agent_name, kind"
    return [_row_to_break(row) for row in _fetchall(sql, params)]


def list_ingested_files() -> List[dict]:
    rows = _fetchall(
        """
        SELECT id, filename, month, year, month_name, source, degraded, ingested_at
        FROM dimensioning_files
        ORDER BY id DESC
        """
    )
    return [dict(row) for row in rows]


# ---------------------------------------------------------------------------
# Manual overrides
# ---------------------------------------------------------------------------

def override_break(
    date: str,
    agent_name: str,
    kind: Union[BreakKind, str],
    value: str,
) -> List[BreakAssignment]:
    """Replace one computed break with a manual ``HH:MM`` value or ``N/A``.

    Returns the agent's breaks for the date after the change. Raises
    ``LookupError`` when the agent has no stored shift on ``date`` and
    :class:`~shift_dimensioning.breaks.OverrideError` for a malformed value.
    """

    break_kind = _break_kind(kind)

    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute(
            "SELECT 1 FROM shift_records WHERE date = ? AND agent_name = ?",
            [date, agent_name],
        )
        if cur.fetchone() is None:
            raise LookupError(f"No shift stored for {agent_name} on {date}")

        cur.execute(
            "SELECT * FROM break_assignments WHERE date = ? AND agent_name = ?",
            [date, agent_name],
        )
        current = [_row_to_break(row) for row in cur.fetchall()]
        if not current:
            raise LookupError(f"{agent_name} has no breaks on {date}")
        updated = apply_override(current, break_kind, value)

        try:
            cur.execute(
                "DELETE FROM break_assignments WHERE date = ? AND agent_name = ?",
                [date, agent_name],
            )
            _insert_breaks(cur, updated)
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise

    logger.info("Overrode %s break of %s on %s with %s", break_kind.value, agent_name, date, value)
    return updated
