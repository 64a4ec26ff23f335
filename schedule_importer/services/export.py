from __future__ import annotations

import csv
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

import pandas as pd

from ..models.schedule import ParsedSchedule

"""CSV export.

- parsed record sets (sessions / booths / registrations) for review before commit
- challenge leaderboard: Rank, Name, Meetings Attended, Total Scans, Last Scan

Values containing commas, quotes or newlines are quoted (csv.QUOTE_MINIMAL).
"""

__all__ = [
    "LEADERBOARD_COLUMNS",
    "LeaderboardEntry",
    "rank_leaderboard",
    "leaderboard_frame",
    "export_leaderboard_csv",
    "export_schedule_csv",
]

LEADERBOARD_COLUMNS = ["Rank", "Name", "Meetings Attended", "Total Scans", "Last Scan"]


@dataclass(frozen=True)
class LeaderboardEntry:
    attendee_id: object
    attendee_name: str
    unique_booths_visited: int
    total_scans: int
    latest_scan_time: datetime | None
    rank: int = 0


def rank_leaderboard(entries: Iterable[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """Order by meetings attended, then total scans (both descending); rank from 1."""
    ordered = sorted(entries, key=lambda e: (-e.unique_booths_visited, -e.total_scans, e.attendee_name.lower()))
    return [
        LeaderboardEntry(
            attendee_id=e.attendee_id,
            attendee_name=e.attendee_name,
            unique_booths_visited=e.unique_booths_visited,
            total_scans=e.total_scans,
            latest_scan_time=e.latest_scan_time,
            rank=i,
        )
        for i, e in enumerate(ordered, start=1)
    ]


def leaderboard_frame(entries: Iterable[LeaderboardEntry]) -> pd.DataFrame:
    rows = [
        [
            e.rank,
            e.attendee_name,
            e.unique_booths_visited,
            e.total_scans,
            e.latest_scan_time.strftime("%Y-%m-%d %H:%M:%S") if e.latest_scan_time else "",
        ]
        for e in entries
    ]
    return pd.DataFrame(rows, columns=LEADERBOARD_COLUMNS)


def export_leaderboard_csv(
    entries: Iterable[LeaderboardEntry],
    directory: Path,
    *,
    today: date | None = None,
) -> Path:
    """Write ``challenge-leaderboard-YYYY-MM-DD.csv`` into ``directory``.

    Raises ValueError when there is nothing to export.
    """
    frame = leaderboard_frame(entries)
    if frame.empty:
        raise ValueError("No data to export")
    directory.mkdir(parents=True, exist_ok=True)
    stamp = (today or date.today()).isoformat()
    path = directory / f"challenge-leaderboard-{stamp}.csv"
    frame.to_csv(path, index=False, quoting=csv.QUOTE_MINIMAL, encoding="utf-8")
    return path


def export_schedule_csv(schedule: ParsedSchedule, directory: Path) -> list[Path]:
    """Write sessions.csv, booths.csv and registrations.csv; returns the paths."""
    directory.mkdir(parents=True, exist_ok=True)
    frames = {
        "sessions.csv": schedule.sessions_frame(),
        "booths.csv": schedule.booths_frame(),
        "registrations.csv": schedule.registrations_frame(),
    }
    paths: list[Path] = []
    for name, frame in frames.items():
        path = directory / name
        frame.to_csv(path, index=False, quoting=csv.QUOTE_MINIMAL, encoding="utf-8")
        paths.append(path)
    return paths
