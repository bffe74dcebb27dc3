"""Tabular views and Excel export of ingestion results."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Dict, List, Union

import pandas as pd

from .models import BreakKind, IngestionResult

logger = logging.getLogger(__name__)

BREAK_COLUMNS = [
    "date",
    "day_kind",
    "agent_name",
    "supervisor",
    "skill",
    "shift",
    "first_break",
    "second_break",
]


def break_table(result: IngestionResult) -> pd.DataFrame:
    """One row per scheduled shift with its break start times.

    A missing break is shown as ``N/A``.
    """

    starts: Dict[tuple, Dict[BreakKind, str]] = {}
    for assignment in result.assignments:
        starts.setdefault((assignment.date, assignment.agent_name), {})[assignment.kind] = assignment.start

    rows: List[dict] = []
    for day in result.dates:
        for record in result.snapshots[day].records:
            breaks = starts.get((record.date, record.agent_name), {})
            rows.append(
                {
                    "date": record.date,
                    "day_kind": record.day_kind.value,
                    "agent_name": record.agent_name,
                    "supervisor": record.supervisor,
                    "skill": record.skill,
                    "shift": record.shift_label,
                    "first_break": breaks.get(BreakKind.FIRST, "N/A"),
                    "second_break": breaks.get(BreakKind.SECOND, "N/A"),
                }
            )
    return pd.DataFrame(rows, columns=BREAK_COLUMNS)


def verdict_table(result: IngestionResult) -> pd.DataFrame:
    rows = []
    for day in result.dates:
        verdict = result.verdicts[day]
        rows.append(
            {
                "date": day,
                "workforce": result.snapshots[day].workforce_size,
                "cap": verdict.cap,
                "occupancy": verdict.occupancy,
                "valid": verdict.valid,
                "violating_minute": verdict.violating_minute or "",
            }
        )
    return pd.DataFrame(
        rows, columns=["date", "workforce", "cap", "occupancy", "valid", "violating_minute"]
    )


def export_to_excel(result: IngestionResult, target: Union[str, Path, IO[bytes]]) -> bool:
    """Write the break schedule and per-date verdicts to an ``.xlsx`` workbook."""

    if not result.records:
        return False
    breaks = break_table(result)
    breaks.columns = [
        "Fecha", "Tipo dia", "Asesor", "Supervisor", "Skill", "Horario",
        "Refrigerio 1", "Refrigerio 2",
    ]
    try:
        with pd.ExcelWriter(target, engine="openpyxl") as writer:
            breaks.to_excel(writer, sheet_name="Refrigerios", index=False)
            verdict_table(result).to_excel(writer, sheet_name="Validacion", index=False)
    except OSError as exc:
        logger.error("Could not write export for %s: %s", result.filename, exc)
        return False
    return True
