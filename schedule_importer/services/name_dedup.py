from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from ..models.resolution import Resolution, Resolved, ResolvedWithReview

"""Session name deduplication.

One NameDeduplicator lives for one import run. The first session with a given
(case-insensitive) name keeps it; later ones are renamed:

- different day than the first occurrence -> "Name (May 2)"
- same day -> "Name (N)", N being the running occurrence count

If the suffixed name is itself already taken (e.g. a literal "Name (2)" label exists)
the numeric suffix is bumped until the name is free, so every session ends up with a
unique name.
"""

__all__ = [
    "NameDeduplicator",
    "day_label",
]


def day_label(d: date) -> str:
    """Short month/day label such as 'May 2'."""
    return f"{d:%b} {d.day}"


@dataclass
class _NameUsage:
    count: int
    first_seen: date


class NameDeduplicator:
    def __init__(self) -> None:
        self._usage: dict[str, _NameUsage] = {}
        self._taken: set[str] = set()

    def assign(self, name: str, start_time: datetime) -> Resolution[str]:
        """Register a session name, renaming it when it collides."""
        key = name.lower()
        session_day = start_time.date()
        usage = self._usage.get(key)

        if usage is None and key not in self._taken:
            self._usage[key] = _NameUsage(count=1, first_seen=session_day)
            self._taken.add(key)
            return Resolved(name)

        if usage is None:
            # 既に別セッションの改名後の名前として使われている
            usage = _NameUsage(count=1, first_seen=session_day)
            self._usage[key] = usage

        usage.count += 1
        if day_label(session_day) != day_label(usage.first_seen):
            candidate = f"{name} ({day_label(session_day)})"
        else:
            candidate = f"{name} ({usage.count})"

        # 日付サフィックスも埋まっていれば番号へ切り替え、空くまで進める
        bump = usage.count
        while candidate.lower() in self._taken:
            candidate = f"{name} ({bump})"
            bump += 1

        self._taken.add(candidate.lower())
        return ResolvedWithReview(
            candidate,
            f'Duplicate session name "{name}" detected. Renamed to "{candidate}".',
        )
