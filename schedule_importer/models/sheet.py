from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Any

"""Sheet / grid domain models.

A Sheet is one workbook tab converted to a plain row-major grid of Python values
(None, str, datetime/time, int/float). Cell typing is derived on demand with
``classify_cell`` instead of being stored per cell.
"""

__all__ = [
    "CellKind",
    "Sheet",
    "BoothColumn",
    "SessionBlock",
    "classify_cell",
    "cell_text",
]


class CellKind(Enum):
    """Kind of a grid cell after normalization."""
    EMPTY = "empty"
    TEXT = "text"
    DATE = "date"
    NUMBER = "number"


def classify_cell(value: Any) -> CellKind:
    if value is None:
        return CellKind.EMPTY
    if isinstance(value, str):
        return CellKind.EMPTY if value.strip() == "" else CellKind.TEXT
    if isinstance(value, (datetime, date, time)):
        return CellKind.DATE
    return CellKind.NUMBER


def cell_text(value: Any) -> str:
    """Trimmed string form of a cell ("" for empty cells)."""
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True)
class Sheet:
    name: str
    grid: list[list[Any]]

    def cell(self, row: int, col: int) -> Any:
        """Return grid[row][col] or None when the row is shorter than col."""
        if row < 0 or row >= len(self.grid):
            return None
        cells = self.grid[row]
        if col < 0 or col >= len(cells):
            return None
        return cells[col]

    @property
    def row_count(self) -> int:
        return len(self.grid)


@dataclass(frozen=True)
class BoothColumn:
    col_index: int
    physical_id: str


@dataclass(frozen=True)
class SessionBlock:
    """Contiguous row range [start_row, end_row) anchored by a first-column label."""
    sheet_name: str
    start_row: int
    end_row: int
    raw_label: Any

    @property
    def excel_row(self) -> int:
        """1-based row number of the anchor row, for messages."""
        return self.start_row + 1
