from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path

from ..excel.grid import SheetHeaderError, scan_sheet
from ..excel.reader import read_workbook, resolve_sheet_date
from ..models.config_models import ParserConfig
from ..models.resolution import needs_review
from ..models.schedule import ParsedSchedule, ParsedSession
from ..models.sheet import Sheet
from .parse_state import ParseAccumulator
from .progress import SheetProgressIndicator
from .registration_extractor import extract_block_registrations
from .time_resolver import SessionLabelError, resolve_session_time

"""Workbook parse driver.

Runs GridReader -> grid parser -> time resolution / name dedup -> registration
extraction for every sheet, with one fresh ParseAccumulator per workbook. Problems
never abort the parse: they become soft errors on the returned ParsedSchedule.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "parse_sheets",
    "parse_workbook",
]


def _parse_sheet(sheet: Sheet, acc: ParseAccumulator, config: ParserConfig, now: datetime) -> int:
    """Parse one sheet into the accumulator; returns the number of sessions added."""
    try:
        layout = scan_sheet(sheet)
    except SheetHeaderError as e:
        acc.add_error(str(e), sheet=sheet.name, error_type="SHEET_HEADER_ERROR")
        return 0

    date_resolution = resolve_sheet_date(sheet.name, now)
    date_needs_review = needs_review(date_resolution)
    if date_needs_review:
        acc.add_error(date_resolution.reason, sheet=sheet.name, error_type="SHEET_DATE_REVIEW")
    base_date = date_resolution.value

    for row, message in layout.errors:
        acc.add_error(message, sheet=sheet.name, row=row, error_type="BOOTH_HEADER_ERROR")
    for booth in layout.booth_columns:
        acc.register_booth(booth.physical_id)

    added = 0
    for block in layout.blocks:
        where = f'Sheet "{sheet.name}", Row {block.excel_row}'
        try:
            timing_resolution = resolve_session_time(
                block.raw_label,
                base_date,
                now,
                where=where,
                session_minutes=config.session_minutes,
                markers=config.company_markers,
            )
        except SessionLabelError as e:
            acc.add_error(str(e), sheet=sheet.name, row=block.excel_row, error_type="SESSION_LABEL_ERROR")
            continue

        timing = timing_resolution.value
        time_needs_review = needs_review(timing_resolution)
        if time_needs_review:
            acc.add_error(timing_resolution.reason, sheet=sheet.name, row=block.excel_row, error_type="SESSION_TIME_REVIEW")

        name_resolution = acc.names.assign(timing.name, timing.start_time)
        was_renamed = needs_review(name_resolution)
        if was_renamed:
            acc.add_error(name_resolution.reason, sheet=sheet.name, row=block.excel_row, error_type="DUPLICATE_SESSION_NAME")

        session = ParsedSession(
            name=name_resolution.value,
            start_time=timing.start_time,
            end_time=timing.end_time,
            raw_label=str(block.raw_label),
            sheet_name=sheet.name,
            row=block.excel_row,
            time_needs_review=time_needs_review,
            date_needs_review=date_needs_review,
            was_renamed=was_renamed,
            original_name=timing.name if was_renamed else None,
        )
        acc.schedule.sessions.append(session)
        added += 1

        for booth in layout.booth_columns:
            extract_block_registrations(sheet, block, booth, session.name, acc, config.company_markers)

    return added


def parse_sheets(
    sheets: Iterable[Sheet],
    *,
    workbook: str = "",
    config: ParserConfig | None = None,
    clock: Callable[[], datetime] = datetime.now,
    show_progress: bool = True,
) -> ParsedSchedule:
    """Parse already loaded sheets into an editable ParsedSchedule."""
    config = config or ParserConfig()
    sheets = list(sheets)
    now = clock()
    acc = ParseAccumulator(workbook=workbook)

    indicator = SheetProgressIndicator(workbook, len(sheets)) if show_progress else None
    for sheet in sheets:
        if indicator is not None:
            indicator.start_sheet(sheet.name)
        errors_before = len(acc.schedule.errors)
        added = _parse_sheet(sheet, acc, config, now)
        logger.debug(
            "sheet=%s sessions=%d new_errors=%d",
            sheet.name,
            added,
            len(acc.schedule.errors) - errors_before,
        )
        if indicator is not None:
            indicator.finish_sheet(success=added > 0, sessions_parsed=added)

    schedule = acc.finish()
    logger.info(
        "parsed workbook=%s sheets=%d sessions=%d booths=%d registrations=%d issues=%d",
        workbook or "<memory>",
        len(sheets),
        len(schedule.sessions),
        len(schedule.booths),
        len(schedule.registrations),
        len(schedule.errors),
    )
    return schedule


def parse_workbook(
    path: Path,
    *,
    config: ParserConfig | None = None,
    clock: Callable[[], datetime] = datetime.now,
    show_progress: bool = True,
) -> ParsedSchedule:
    """Read and parse a schedule workbook.

    Raises:
        WorkbookReadError: the file cannot be opened or has no sheets
    """
    sheets = read_workbook(path)
    return parse_sheets(sheets, workbook=path.name, config=config, clock=clock, show_progress=show_progress)
