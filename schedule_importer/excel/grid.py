from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..models.config_models import DEFAULT_COMPANY_MARKERS
from ..models.sheet import BoothColumn, CellKind, SessionBlock, Sheet, classify_cell

"""Schedule grid parser.

Sheet layout:
- one header row holding one or more ``Booth: <physicalId>`` cells
- below it, every row whose first cell is non-empty starts a session block that
  runs until the next such row (or the end of the sheet)
- under each booth column inside a block: company marker rows and person rows
"""

__all__ = [
    "BOOTH_PREFIX",
    "SheetHeaderError",
    "GridLayout",
    "locate_header_row",
    "collect_booth_columns",
    "segment_session_blocks",
    "scan_sheet",
    "clean_text",
]

BOOTH_PREFIX = "booth:"
_PARENTHETICAL_RE = re.compile(r"\s*\(.*\)\s*")


def clean_text(value: object, markers: Iterable[str] = DEFAULT_COMPANY_MARKERS) -> str:
    """Drop parenthetical notes and company marker glyphs, then trim."""
    if value is None:
        return ""
    text = _PARENTHETICAL_RE.sub(" ", str(value))
    for marker in markers:
        text = text.replace(marker, "")
    return text.strip()


class SheetHeaderError(Exception):
    """Raised when a sheet has no row containing a 'Booth:' header cell."""


@dataclass
class GridLayout:
    header_row: int
    booth_columns: list[BoothColumn]
    blocks: list[SessionBlock]
    errors: list[tuple[int, str]] = field(default_factory=list)  # (1-based row or -1, message)


def _is_booth_header(value: object) -> bool:
    return isinstance(value, str) and value.strip().lower().startswith(BOOTH_PREFIX)


def locate_header_row(sheet: Sheet) -> int:
    """Index of the first row containing a 'Booth:' cell.

    Raises:
        SheetHeaderError: no such row exists
    """
    for idx, row in enumerate(sheet.grid):
        if row and any(_is_booth_header(c) for c in row):
            return idx
    raise SheetHeaderError(
        f"Sheet \"{sheet.name}\": Could not find a header row containing 'Booth:'. "
        "This sheet will be skipped for registration parsing."
    )


def collect_booth_columns(sheet: Sheet, header_row: int) -> list[BoothColumn]:
    columns: list[BoothColumn] = []
    for col_index, value in enumerate(sheet.grid[header_row]):
        if not _is_booth_header(value):
            continue
        physical_id = value.partition(":")[2].strip()
        if physical_id:
            columns.append(BoothColumn(col_index=col_index, physical_id=physical_id))
    return columns


def segment_session_blocks(sheet: Sheet, header_row: int) -> list[SessionBlock]:
    """Split the rows below the header into session blocks."""
    anchors = [
        idx
        for idx in range(header_row + 1, sheet.row_count)
        if classify_cell(sheet.cell(idx, 0)) is not CellKind.EMPTY
    ]
    blocks: list[SessionBlock] = []
    for i, start in enumerate(anchors):
        end = anchors[i + 1] if i + 1 < len(anchors) else sheet.row_count
        blocks.append(
            SessionBlock(
                sheet_name=sheet.name,
                start_row=start,
                end_row=end,
                raw_label=sheet.cell(start, 0),
            )
        )
    return blocks


def scan_sheet(sheet: Sheet) -> GridLayout:
    """Locate header, booth columns and session blocks of one sheet.

    Raises:
        SheetHeaderError: propagated from ``locate_header_row``
    """
    header_row = locate_header_row(sheet)
    layout = GridLayout(
        header_row=header_row,
        booth_columns=collect_booth_columns(sheet, header_row),
        blocks=segment_session_blocks(sheet, header_row),
    )
    if not layout.booth_columns:
        layout.errors.append(
            (
                header_row + 1,
                f"Sheet \"{sheet.name}\": No valid 'Booth: [ID]' headers found. "
                "Please check the booth header row.",
            )
        )
    return layout
