from __future__ import annotations

import re
import warnings
from collections.abc import Iterable
from datetime import date, datetime
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

import numpy as np
import pandas as pd

from ..models.resolution import Resolution, Resolved, ResolvedWithReview
from ..models.sheet import Sheet

"""Workbook reader (GridReader).

Loads every tab of an .xlsx workbook into a plain row-major grid, with no header
inference: the schedule layout is discovered later by the grid parser. pandas is
used for I/O only; cells are normalized to None / str / datetime / time / int / float.

A sheet's calendar date comes from its name (e.g. "May 1, 2024" or "2024-05-01").
A name without a year ("May 1", "March") is placed in the current year and
flagged for review.
"""

__all__ = [
    "WorkbookReadError",
    "read_workbook",
    "sheet_from_frame",
    "resolve_sheet_date",
]


MIN_SHEET_YEAR = 1900
_YEAR_RE = re.compile(r"\b\d{4}\b")
_MONTH_RE = re.compile(r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?(?![a-z])", re.IGNORECASE)


class WorkbookReadError(Exception):
    """Raised when the workbook cannot be opened or contains no sheets."""


def _normalize_cell(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.to_pydatetime()
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and np.isnan(value):
        return None
    return value


def sheet_from_frame(name: str, df: pd.DataFrame) -> Sheet:
    """Convert a header-less DataFrame into a Sheet grid."""
    grid = [
        [_normalize_cell(v) for v in row]
        for row in df.astype(object).itertuples(index=False, name=None)
    ]
    return Sheet(name=str(name), grid=grid)


def read_workbook(path: Path, target_sheets: Iterable[str] | None = None) -> list[Sheet]:
    """Read a workbook returning one Sheet per tab, in workbook order.

    Parameters
    ----------
    path: workbook path (.xlsx)
    target_sheets: restrict to these sheet names (None = all sheets)
    """
    try:
        xls = pd.ExcelFile(path)
    except (OSError, ValueError, BadZipFile) as e:
        raise WorkbookReadError(f"cannot open workbook {path}: {e}") from e

    if not xls.sheet_names:
        raise WorkbookReadError("Excel file contains no sheets.")

    wanted = set(target_sheets) if target_sheets is not None else None
    sheets: list[Sheet] = []
    for name in xls.sheet_names:
        if wanted is not None and str(name) not in wanted:
            continue
        # ヘッダなし・NA 変換なしで生読み (レイアウト解釈は grid parser 側)
        df = xls.parse(name, header=None, keep_default_na=False, na_values=[])
        sheets.append(sheet_from_frame(str(name), df))
    return sheets


def _parse_date(text: str) -> date | None:
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            ts = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts) or ts.year < MIN_SHEET_YEAR:
        return None
    return ts.date()


def resolve_sheet_date(sheet_name: str, now: datetime) -> Resolution[date]:
    """Resolve the calendar date a sheet's sessions take place on.

    Falls back to ``now``'s date, flagged for review, when the name is not a date.
    """
    name = sheet_name.strip()
    fallback = ResolvedWithReview(
        now.date(),
        f'Sheet name "{sheet_name}" is not a valid date. '
        "A default date has been assigned. Please review manually.",
    )

    if _YEAR_RE.search(name):
        parsed = _parse_date(name)
        return Resolved(parsed) if parsed is not None else fallback

    # 年なし: 月名があるときだけ今年の日付として解釈する
    if not _MONTH_RE.search(name):
        return fallback
    parsed = _parse_date(f"{name} {now.year}")
    if parsed is None:
        return fallback
    return ResolvedWithReview(
        parsed,
        f'Sheet name "{sheet_name}" has no year. Assumed {now.year}. Please review manually.',
    )
