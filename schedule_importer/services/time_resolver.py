from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

from ..excel.grid import clean_text
from ..models.config_models import DEFAULT_COMPANY_MARKERS, DEFAULT_SESSION_MINUTES
from ..models.resolution import Resolution, Resolved, ResolvedWithReview

"""Session time resolution.

The first cell of a session block is either a real Excel date/time or a text label
such as "Kickoff 9:30" or "Demo (room B) 14.00". Order of preference:

1. date/time cell -> its time of day on the sheet's base date
2. H:MM / HH:MM inside the cleaned label -> that time on the base date
3. neither -> the current time of day as a placeholder, flagged for review

Sessions last ``session_minutes`` (30 by default) since the sheet has no end column.
"""

__all__ = [
    "TIME_PATTERN",
    "SessionLabelError",
    "SessionTiming",
    "resolve_session_time",
]

TIME_PATTERN = re.compile(r"\b(\d{1,2})[:.](\d{2})\b")


class SessionLabelError(Exception):
    """Raised when a session anchor cell cannot produce a session at all."""


@dataclass(frozen=True)
class SessionTiming:
    name: str
    start_time: datetime
    end_time: datetime


def _on_date(base: date, tod: time) -> datetime:
    return datetime.combine(base, tod.replace(tzinfo=None))


def resolve_session_time(
    value: Any,
    base_date: date,
    now: datetime,
    *,
    where: str = "",
    session_minutes: int = DEFAULT_SESSION_MINUTES,
    markers: Iterable[str] = DEFAULT_COMPANY_MARKERS,
) -> Resolution[SessionTiming]:
    """Resolve name and start/end time of one session anchor cell.

    Parameters
    ----------
    value: first-column cell of the block
    base_date: calendar date of the sheet
    now: clock reading used for the placeholder time
    where: message prefix locating the cell (e.g. 'Sheet "May 1", Row 4')

    Raises
    ------
    SessionLabelError: empty label, or a cell type that is neither text nor date
    """
    duration = timedelta(minutes=session_minutes)
    prefix = f"{where}: " if where else ""

    if isinstance(value, datetime):
        start = _on_date(base_date, value.time())
        return Resolved(SessionTiming(f"Session @ {start:%H:%M}", start, start + duration))
    if isinstance(value, time):
        start = _on_date(base_date, value)
        return Resolved(SessionTiming(f"Session @ {start:%H:%M}", start, start + duration))

    if not isinstance(value, str):
        raise SessionLabelError(
            f"{prefix}Invalid data type in the first column for a session. Got {type(value).__name__}."
        )

    name = clean_text(value, markers)
    if not name:
        raise SessionLabelError(f"{prefix}Empty cell found where a session start was expected.")

    placeholder = _on_date(base_date, now.time())
    match = TIME_PATTERN.search(name)
    if match is None:
        return ResolvedWithReview(
            SessionTiming(name, placeholder, placeholder + duration),
            f'{prefix}Could not parse time from session name "{name}". '
            "A default time has been set. Please review and edit manually.",
        )

    hours, minutes = int(match.group(1)), int(match.group(2))
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return ResolvedWithReview(
            SessionTiming(name, placeholder, placeholder + duration),
            f'{prefix}Invalid time found in session name "{name}". Using default time.',
        )

    start = _on_date(base_date, time(hours, minutes))
    return Resolved(SessionTiming(name, start, start + duration))
