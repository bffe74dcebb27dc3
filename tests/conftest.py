"""Shared fixtures for the dimensioning test suite."""
from datetime import date

import pandas as pd
import pytest

from shift_dimensioning.models import DayKind, NORMAL_SHIFT, ShiftRecord

HEADER = ["Asesor", "Supervisor", "Skill", "Fecha", "Tipo Dia", "Inicio", "Fin", "Motivo"]

TODAY = date(2025, 6, 15)


def sheet(rows, header=HEADER) -> pd.DataFrame:
    """A header-less frame as ``load_workbook`` returns it."""
    return pd.DataFrame([list(header), *[list(row) for row in rows]], dtype=object)


def make_record(
    agent="Ana Perez",
    day="2025-05-08",
    start="08:00",
    end="14:00",
    motive=NORMAL_SHIFT,
    day_kind=DayKind.HOLIDAY,
) -> ShiftRecord:
    return ShiftRecord(
        agent_name=agent,
        date=day,
        day_kind=day_kind,
        start_time=start,
        end_time=end,
        motive=motive,
    )


@pytest.fixture
def working_rows():
    return [
        ["Ana Perez", "Luis Soto", 860, "08/05/2025", "Hábil", "8:00", "14:00", "Jornada Normal"],
        ["Bruno Diaz", "Luis Soto", 861, "08/05/2025", "Hábil", "09:00", "13:00", "jornada normal"],
        ["Carla Ruiz", "Luis Soto", 860, "08/05/2025", "Hábil", "10:00", "18:00", "Vacaciones"],
        ["Dario Gil", "Luis Soto", 860, "03/05/2025", "Hábil", "08:00", "14:00", "Jornada Normal"],
        ["", "Luis Soto", 860, "08/05/2025", "Hábil", "08:00", "14:00", "Jornada Normal"],
        ["Eva Mora", "Luis Soto", 860, "not a date", "Hábil", "08:00", "14:00", "Jornada Normal"],
        ["Fabio Lara", "Luis Soto", 860, "08/05/2025", "Hábil", "", "14:00", "Jornada Normal"],
        [None, None, None, None, None, None, None, None],
    ]


@pytest.fixture
def non_working_rows():
    return [
        ["Gina Vega", "Marta Rios", 861, "10/05/2025", "Sábado", "07:00", "13:00", "Jornada Normal"],
        ["Hugo Paz", "Marta Rios", 861, "11/05/2025", "Domingo", "22:00", "06:00", "Jornada Normal"],
    ]


@pytest.fixture
def workbook(working_rows, non_working_rows):
    return {
        "Resumen": sheet([["x"]], header=["Notas"]),
        "Dias Habiles": sheet(working_rows),
        "Dias No Habiles": sheet(non_working_rows),
    }


@pytest.fixture
def xlsx_file(tmp_path, working_rows, non_working_rows):
    path = tmp_path / "Dimensionamiento_May_2025.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for name, rows in (("Dias Habiles", working_rows), ("Dias No Habiles", non_working_rows)):
            frame = pd.DataFrame(rows, columns=HEADER)
            frame.to_excel(writer, sheet_name=name, index=False)
    return path
