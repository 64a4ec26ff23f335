from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..models.records import AttendeeRecord, BoothRecord, RegistrationRecord, SessionRecord
from ..models.schedule import RegistrationCandidate, attendee_key

"""Foreign key resolution between import phases.

Parent phases (booths, sessions, attendees) return the records the persistence
layer generated ids for. Those records are folded into lookup maps here:

- session name (case-insensitive)        -> session id
- booth physical id (case-insensitive)   -> booth id
- attendee identity key                  -> attendee id

Registration candidates are then resolved against the maps. A candidate whose
parent cannot be found raises FKResolutionError; the orchestrator counts it as
skipped, not failed.
"""

__all__ = [
    "FKResolutionError",
    "ForeignKeyMaps",
    "build_session_map",
    "build_booth_map",
    "build_attendee_map",
    "resolve_registration",
]


class FKResolutionError(Exception):
    """A registration's session, booth or attendee has no persisted record."""


def build_session_map(records: Iterable[SessionRecord]) -> dict[str, Any]:
    return {r.name.lower(): r.id for r in records}


def build_booth_map(records: Iterable[BoothRecord]) -> dict[str, Any]:
    return {r.physical_id.lower(): r.id for r in records}


def build_attendee_map(records: Iterable[AttendeeRecord]) -> dict[str, Any]:
    # 返却レコード側の氏名/所属でキーを作る (元データと表記揺れがあると引けない)
    return {attendee_key(r.first_name, r.last_name, r.organization): r.id for r in records}


@dataclass
class ForeignKeyMaps:
    """Lookup maps for one import run."""
    sessions: dict[str, Any] = field(default_factory=dict)
    booths: dict[str, Any] = field(default_factory=dict)
    attendees: dict[str, Any] = field(default_factory=dict)

    def session_id(self, name: str) -> Any | None:
        return self.sessions.get(name.lower())

    def booth_id(self, physical_id: str) -> Any | None:
        return self.booths.get(physical_id.lower())

    def attendee_id(self, key: str) -> Any | None:
        return self.attendees.get(key)


def resolve_registration(
    candidate: RegistrationCandidate,
    maps: ForeignKeyMaps,
    event_id: Any,
) -> RegistrationRecord:
    """Turn a candidate into a RegistrationRecord with persisted ids.

    Raises
    ------
    FKResolutionError: session, booth (when one is expected) or attendee is missing.
    """
    session_id = maps.session_id(candidate.session_name)
    if session_id is None:
        raise FKResolutionError(f"Session '{candidate.session_name}' not found.")

    booth_id = None
    if candidate.expected_booth_physical_id:
        booth_id = maps.booth_id(candidate.expected_booth_physical_id)
        if booth_id is None:
            raise FKResolutionError(f"Booth ID '{candidate.expected_booth_physical_id}' not found.")

    attendee_id = maps.attendee_id(candidate.identity_key)
    if attendee_id is None:
        raise FKResolutionError("Corresponding attendee profile not found/created.")

    return RegistrationRecord(
        event_id=event_id,
        session_id=session_id,
        attendee_id=attendee_id,
        expected_booth_id=booth_id,
    )
