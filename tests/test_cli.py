"""Tests for the ingestion command-line script."""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "scripts"))

import ingest_dimensioning  # noqa: E402
from shift_dimensioning import database, list_dates  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    for name in ("DIMENSIONING_INFERENCE_API_KEY", "DIMENSIONING_ENFORCE_DISTRIBUTION"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DIMENSIONING_DB_PATH", str(tmp_path / "cli.db"))
    monkeypatch.setattr(database, "DB_PATH", tmp_path / "cli.db")


def test_prints_report_and_verdicts(xlsx_file, capsys) -> None:
    assert ingest_dimensioning.main([str(xlsx_file), "--no-inference"]) == 0

    out = capsys.readouterr().out
    assert "Mayo 2025" in out
    assert "OK  2025-05-08" in out
    assert "Dias Habiles" in out


def test_save_and_export(xlsx_file, tmp_path) -> None:
    export = tmp_path / "out.xlsx"

    assert ingest_dimensioning.main([str(xlsx_file), "--save", "--export", str(export)]) == 0

    assert export.exists()
    assert list_dates() == ["2025-05-08", "2025-05-10", "2025-05-11"]


def test_enforced_violation_exits_with_error(tmp_path, capsys) -> None:
    path = tmp_path / "turnos_05-2025.csv"
    rows = [f"Agent {i},Luis,860,08/05/2025,Habil,08:00,16:00,Jornada Normal" for i in range(10)]
    path.write_text("\n".join(["Asesor,Supervisor,Skill,Fecha,Tipo Dia,Inicio,Fin,Motivo", *rows]) + "\n")

    assert ingest_dimensioning.main([str(path), "--enforce"]) == 1
    assert "distribution" in capsys.readouterr().err
