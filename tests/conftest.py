# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path

import pandas as pd
import pytest

from schedule_importer.logging.init import reset_logging
from schedule_importer.models.config_models import ImportConfig
from schedule_importer.models.records import EventInfo

MARK = "›"


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_workbook: ./data/schedule.xlsx
event:
  id: 7
  name: Partner Summit
  start_date: 2024-05-01
  end_date: 2024-05-01
timezone: UTC
parser:
  session_minutes: 30
logs_directory: ./logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def fixed_now() -> datetime:
    return datetime(2024, 4, 20, 8, 15, 0)


@pytest.fixture()
def import_config(tmp_path: Path) -> ImportConfig:
    return ImportConfig(
        source_workbook=str(tmp_path / "schedule.xlsx"),
        event=EventInfo(id=7, name="Partner Summit", start_date=date(2024, 5, 1), end_date=date(2024, 5, 1)),
        logs_directory=str(tmp_path / "logs"),
    )


def write_workbook(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    """Write a header-less workbook, one tab per entry."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture()
def make_workbook() -> Callable[[Path, dict[str, list[list[object]]]], Path]:
    return write_workbook


@pytest.fixture()
def day_grid() -> list[list[object]]:
    """One day: two booths, two sessions."""
    return [
        ["Partner Summit", "", ""],
        ["Time", "Booth: A1", "Booth: B2"],
        ["Kickoff 9:30", f"{MARK} Acme Corp", f"{MARK} Globex"],
        ["", "Jane Doe", "Hank Scorpio"],
        ["", f"{MARK} Initech", ""],
        ["", "Peter Gibbons", ""],
        ["Demo 10:00", f"{MARK} Acme Corp", ""],
        ["", f"{MARK} Hooli", ""],
        ["", "Gavin Belson", ""],
    ]
