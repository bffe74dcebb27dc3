"""Tests for the heuristic degraded extraction."""
from shift_dimensioning.degraded import MAX_DEGRADED_ROWS, degraded_extraction, header_date
from shift_dimensioning.models import DimensioningPeriod, KeyedRows, PositionalRows

PERIOD = DimensioningPeriod(5, 2025, "Mayo")


def _positional(rows, header=("Asesor", "Lider", "Skill", "Fecha", "Inicio", "Fin", "Motivo")):
    return PositionalRows(header=tuple(header), rows=tuple(tuple(r) for r in rows))


def test_header_date_forms() -> None:
    assert header_date("Lunes 05/05", 2025) == (2025, 5, 5)
    assert header_date("Sábado 10/05/25", 2024) == (2025, 5, 10)
    assert header_date("Turno 12-05-2025", 2024) == (2025, 5, 12)
    assert header_date("Asesor", 2025) is None
    assert header_date("Lunes 05/13", 2025) is None


def test_positional_rows() -> None:
    rows = _positional(
        [
            ["Ana", "Luis", 860, "08/05/2025", "8:00", "14:00", "Jornada Normal"],
            ["Bruno", "Luis", 860, "04/05/2025", "8:00", "14:00", "Jornada Normal"],
            ["Carla", "Luis", 860, "08/05/2025", "8:00", "14:00", "Vacaciones"],
            ["Dario", "Luis", 860, "08/05/2025", "", "14:00", "Jornada Normal"],
        ]
    )
    result = degraded_extraction(rows, "f.xlsx", PERIOD, reason="inference quota exceeded")

    assert result.degraded
    assert result.shifts == [
        {
            "agent": "Ana",
            "date": "2025-05-08",
            "dayType": "Regular",
            "start": "08:00",
            "end": "14:00",
            "shift": "08:00 a 14:00",
            "motive": "normal shift",
        }
    ]
    assert result.statistics["totalAgents"] == 4
    assert result.statistics["validShifts"] == 1
    assert result.statistics["reason"] == "inference quota exceeded"
    assert result.periods == [{"month": 5, "year": 2025, "monthName": "Mayo"}]
    assert result.warnings


def test_keyed_rows() -> None:
    rows = KeyedRows(
        rows=(
            {"Nombre": "Ana", "Fecha": "2025-05-10", "Hora Inicio": "7:00", "Hora Fin": "13:00", "Motivo": "jornada normal"},
        )
    )
    result = degraded_extraction(rows, None, PERIOD)
    assert result.shifts[0]["agent"] == "Ana"
    assert result.shifts[0]["dayType"] == "Saturday"


def test_header_dates_give_periods_and_covered_dates() -> None:
    rows = _positional([], header=("Asesor", "Sábado 10/05/2025", "Domingo 11/05/2025", "Lunes 02/06/2025"))
    result = degraded_extraction(rows, None, PERIOD)

    assert [c["date"] for c in result.covered_dates] == ["2025-05-10", "2025-05-11", "2025-06-02"]
    assert [c["dayType"] for c in result.covered_dates] == ["Saturday", "Sunday", "Regular"]
    assert [(p["month"], p["year"]) for p in result.periods] == [(5, 2025), (6, 2025)]


def test_at_most_fifty_rows_are_read() -> None:
    rows = _positional(
        [[f"Agent {i}", "", "", "08/05/2025", "8:00", "14:00", "jornada normal"] for i in range(60)]
    )
    result = degraded_extraction(rows, None, PERIOD)
    assert len(result.shifts) == MAX_DEGRADED_ROWS
