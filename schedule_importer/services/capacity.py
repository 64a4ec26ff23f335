from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from ..models.records import BoothRecord, CapacityLink, SessionRecord
from ..models.schedule import RegistrationCandidate
from .fk_resolution import ForeignKeyMaps

"""Expected headcount per (session, booth).

Every created session gets one row for every created booth, zero included.
Vendor staff do not count against a booth's capacity.
"""

__all__ = [
    "count_registrations",
    "build_capacity_links",
]


def count_registrations(
    candidates: Iterable[RegistrationCandidate],
    maps: ForeignKeyMaps,
    is_vendor: Callable[[RegistrationCandidate], bool],
) -> Counter[tuple[Any, Any]]:
    counts: Counter[tuple[Any, Any]] = Counter()
    for candidate in candidates:
        if is_vendor(candidate) or not candidate.expected_booth_physical_id:
            continue
        session_id = maps.session_id(candidate.session_name)
        booth_id = maps.booth_id(candidate.expected_booth_physical_id)
        if session_id is None or booth_id is None:
            continue
        counts[(session_id, booth_id)] += 1
    return counts


def build_capacity_links(
    sessions: Sequence[SessionRecord],
    booths: Sequence[BoothRecord],
    counts: Counter[tuple[Any, Any]],
) -> list[CapacityLink]:
    return [
        CapacityLink(session_id=s.id, booth_id=b.id, capacity=counts.get((s.id, b.id), 0))
        for s in sessions
        for b in booths
    ]
