from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol

from ..models.records import (
    AttendeeRecord,
    BatchResult,
    BoothRecord,
    CapacityLink,
    EventInfo,
    RegistrationRecord,
    SessionRecord,
)
from ..models.schedule import ParsedBooth, ParsedSession

"""Persistence boundary used by the import orchestrator.

Each operation takes a list and returns BatchResult(created, errors). Implementations
decide whether a batch is atomic or partial; the orchestrator only looks at what came
back. Raising PersistenceError (or any other exception) aborts the import run.

Implementations:
- ``schedule_importer.db.postgres.PostgresGateway`` (psycopg2)
- ``schedule_importer.db.memory.InMemoryGateway`` (dry runs / tests)
"""

__all__ = [
    "PersistenceError",
    "AttendeeInput",
    "PersistenceGateway",
]


class PersistenceError(Exception):
    """Unrecoverable failure talking to the persistence layer."""


class AttendeeInput(Protocol):
    first_name: str
    last_name: str
    organization: str


class PersistenceGateway(Protocol):
    def create_booths(self, event: EventInfo, booths: Sequence[ParsedBooth]) -> BatchResult[BoothRecord]: ...

    def create_sessions(self, event: EventInfo, sessions: Sequence[ParsedSession]) -> BatchResult[SessionRecord]: ...

    def create_capacity_links(self, event: EventInfo, links: Sequence[CapacityLink]) -> BatchResult[CapacityLink]: ...

    def find_or_create_attendees(
        self, event: EventInfo, attendees: Sequence[AttendeeInput]
    ) -> BatchResult[AttendeeRecord]: ...

    def mark_attendees_as_vendor(self, attendee_ids: Sequence[Any]) -> BatchResult[Any]: ...

    def create_registrations(
        self, registrations: Sequence[RegistrationRecord]
    ) -> BatchResult[RegistrationRecord]: ...

    def update_event_date_range(
        self, event: EventInfo, start: datetime, end: datetime
    ) -> BatchResult[EventInfo]: ...

    def refresh_cached_views(self, event: EventInfo) -> BatchResult[str]: ...
