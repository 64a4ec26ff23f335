from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from schedule_importer.excel.reader import (
    WorkbookReadError,
    read_workbook,
    resolve_sheet_date,
    sheet_from_frame,
)
from schedule_importer.models.resolution import Resolved, ResolvedWithReview

NOW = datetime(2024, 4, 20, 8, 15)


def test_sheet_from_frame_normalizes_cells():
    df = pd.DataFrame(
        [
            ["Booth: A1", np.int64(3), np.nan],
            [pd.Timestamp("2024-05-01 09:30"), "", np.float64(1.5)],
        ]
    )
    sheet = sheet_from_frame("2024-05-01", df)

    assert sheet.name == "2024-05-01"
    assert sheet.cell(0, 0) == "Booth: A1"
    assert sheet.cell(0, 1) == 3 and type(sheet.cell(0, 1)) is int
    assert sheet.cell(0, 2) is None
    assert sheet.cell(1, 0) == datetime(2024, 5, 1, 9, 30)
    assert type(sheet.cell(1, 0)) is datetime
    assert sheet.cell(1, 2) == 1.5
    # out of range is None, not IndexError
    assert sheet.cell(5, 5) is None


def test_read_workbook_returns_sheets_in_order(tmp_path: Path, make_workbook):
    path = make_workbook(
        tmp_path / "wb.xlsx",
        {
            "2024-05-02": [["Time", "Booth: B1"]],
            "2024-05-01": [["Time", "Booth: A1"], ["Kickoff 9:30", "N/A"]],
        },
    )
    sheets = read_workbook(path)
    assert [s.name for s in sheets] == ["2024-05-02", "2024-05-01"]
    # NA 文字列は文字列のまま
    assert sheets[1].cell(1, 1) == "N/A"


def test_read_workbook_target_sheets(tmp_path: Path, make_workbook):
    path = make_workbook(tmp_path / "wb.xlsx", {"A": [["x"]], "B": [["y"]]})
    sheets = read_workbook(path, target_sheets=["B"])
    assert [s.name for s in sheets] == ["B"]


def test_read_workbook_missing_file(tmp_path: Path):
    with pytest.raises(WorkbookReadError):
        read_workbook(tmp_path / "missing.xlsx")


def test_read_workbook_not_a_workbook(tmp_path: Path):
    bogus = tmp_path / "bogus.xlsx"
    bogus.write_bytes(b"not a zip file")
    with pytest.raises(WorkbookReadError):
        read_workbook(bogus)


def test_resolve_sheet_date_valid():
    res = resolve_sheet_date("2024-05-01", NOW)
    assert res == Resolved(date(2024, 5, 1))


def test_resolve_sheet_date_invalid_falls_back_to_today():
    res = resolve_sheet_date("Registration Desk", NOW)
    assert isinstance(res, ResolvedWithReview)
    assert res.value == date(2024, 4, 20)
    assert 'Sheet name "Registration Desk" is not a valid date' in res.reason


@pytest.mark.parametrize(
    "sheet_name, expected",
    [
        ("May 1", date(2024, 5, 1)),
        ("Jun 3", date(2024, 6, 3)),
        ("March", date(2024, 3, 1)),
    ],
)
def test_resolve_sheet_date_without_year_uses_current_year(sheet_name, expected):
    res = resolve_sheet_date(sheet_name, NOW)
    assert isinstance(res, ResolvedWithReview)
    assert res.value == expected
    assert res.reason == f'Sheet name "{sheet_name}" has no year. Assumed 2024. Please review manually.'


@pytest.mark.parametrize("sheet_name", ["Monday", "Marketing", "1066-10-14", "Room 1010"])
def test_resolve_sheet_date_unusable_names_fall_back_to_today(sheet_name):
    res = resolve_sheet_date(sheet_name, NOW)
    assert isinstance(res, ResolvedWithReview)
    assert res.value == date(2024, 4, 20)
    assert "is not a valid date" in res.reason


def test_resolve_sheet_date_with_year_is_not_flagged():
    assert resolve_sheet_date("May 1, 2024", NOW) == Resolved(date(2024, 5, 1))
