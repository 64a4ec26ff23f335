from __future__ import annotations

import itertools
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

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
from .gateway import AttendeeInput

"""In-memory persistence gateway.

Used for dry runs (no database connection) and by the test-suite. Behaves like the
PostgreSQL gateway at the contract level: unique booth physical ids and session names
per event, attendees found again by their synthesized e-mail.

Failure injection:
- ``failures[op] = message``            whole batch fails (nothing created)
- ``item_failures[op] = fn(item)``      per-item failure when fn returns a message
- ``exceptions[op] = exc``              the call raises
"""

__all__ = [
    "InMemoryGateway",
    "synthesized_email",
]

ItemCheck = Callable[[Any], "str | None"]


def synthesized_email(first_name: str, last_name: str) -> str:
    return f"{first_name.lower()}.{last_name.lower()}@noemail.local".replace(" ", ".")


class InMemoryGateway:
    def __init__(
        self,
        *,
        failures: dict[str, str] | None = None,
        item_failures: dict[str, ItemCheck] | None = None,
        exceptions: dict[str, Exception] | None = None,
    ) -> None:
        self.failures = dict(failures or {})
        self.item_failures = dict(item_failures or {})
        self.exceptions = dict(exceptions or {})
        self._ids = itertools.count(1)
        self.booths: list[BoothRecord] = []
        self.sessions: list[SessionRecord] = []
        self.capacities: list[CapacityLink] = []
        self.attendees: dict[str, AttendeeRecord] = {}  # email -> record
        self.event_attendees: set[tuple[Any, Any]] = set()
        self.registrations: list[RegistrationRecord] = []
        self.event_updates: list[tuple[Any, datetime, datetime]] = []
        self.refresh_count = 0
        self.calls: list[str] = []

    def _enter(self, op: str) -> str | None:
        self.calls.append(op)
        if op in self.exceptions:
            raise self.exceptions[op]
        return self.failures.get(op)

    def _item_error(self, op: str, item: Any) -> str | None:
        check = self.item_failures.get(op)
        return check(item) if check is not None else None

    def create_booths(self, event: EventInfo, booths: Sequence[ParsedBooth]) -> BatchResult[BoothRecord]:
        failure = self._enter("create_booths")
        if failure:
            return BatchResult(created=[], errors=[f'Booth "{b.physical_id}": {failure}' for b in booths])
        existing = {b.physical_id.lower() for b in self.booths}
        created: list[BoothRecord] = []
        errors: list[str] = []
        for booth in booths:
            err = self._item_error("create_booths", booth)
            if err is None and booth.physical_id.lower() in existing:
                err = "duplicate physical id"
            if err:
                errors.append(f'Booth "{booth.physical_id}": {err}')
                continue
            record = BoothRecord(id=next(self._ids), physical_id=booth.physical_id, company_name=booth.display_company)
            existing.add(booth.physical_id.lower())
            self.booths.append(record)
            created.append(record)
        return BatchResult(created=created, errors=errors)

    def create_sessions(self, event: EventInfo, sessions: Sequence[ParsedSession]) -> BatchResult[SessionRecord]:
        failure = self._enter("create_sessions")
        if failure:
            return BatchResult(created=[], errors=[f'Session "{s.name}": {failure}' for s in sessions])
        existing = {s.name.lower() for s in self.sessions}
        created: list[SessionRecord] = []
        errors: list[str] = []
        for session in sessions:
            err = self._item_error("create_sessions", session)
            if err is None and session.name.lower() in existing:
                err = "duplicate session name"
            if err:
                errors.append(f'Session "{session.name}": {err}')
                continue
            record = SessionRecord(
                id=next(self._ids),
                name=session.name,
                start_time=session.start_time,
                end_time=session.end_time,
            )
            existing.add(session.name.lower())
            self.sessions.append(record)
            created.append(record)
        return BatchResult(created=created, errors=errors)

    def create_capacity_links(self, event: EventInfo, links: Sequence[CapacityLink]) -> BatchResult[CapacityLink]:
        failure = self._enter("create_capacity_links")
        if failure:
            return BatchResult(created=[], errors=[failure])
        self.capacities.extend(links)
        return BatchResult(created=list(links), errors=[])

    def find_or_create_attendees(
        self, event: EventInfo, attendees: Sequence[AttendeeInput]
    ) -> BatchResult[AttendeeRecord]:
        failure = self._enter("find_or_create_attendees")
        if failure:
            return BatchResult(created=[], errors=[failure])
        created: list[AttendeeRecord] = []
        errors: list[str] = []
        for attendee in attendees:
            full_name = f"{attendee.first_name} {attendee.last_name}".strip()
            err = self._item_error("find_or_create_attendees", attendee)
            if err:
                errors.append(f"Failed to create {full_name}: {err}")
                continue
            email = synthesized_email(attendee.first_name, attendee.last_name)
            record = self.attendees.get(email)
            if record is None:
                record = AttendeeRecord(
                    id=next(self._ids),
                    first_name=attendee.first_name,
                    last_name=attendee.last_name,
                    organization=attendee.organization,
                )
                self.attendees[email] = record
            self.event_attendees.add((event.id, record.id))
            created.append(record)
        return BatchResult(created=created, errors=errors)

    def mark_attendees_as_vendor(self, attendee_ids: Sequence[Any]) -> BatchResult[Any]:
        failure = self._enter("mark_attendees_as_vendor")
        if failure:
            return BatchResult(created=[], errors=[failure])
        wanted = set(attendee_ids)
        for email, record in list(self.attendees.items()):
            if record.id in wanted:
                self.attendees[email] = AttendeeRecord(
                    id=record.id,
                    first_name=record.first_name,
                    last_name=record.last_name,
                    organization=record.organization,
                    is_vendor=True,
                )
        return BatchResult(created=list(attendee_ids), errors=[])

    def create_registrations(self, registrations: Sequence[RegistrationRecord]) -> BatchResult[RegistrationRecord]:
        failure = self._enter("create_registrations")
        if failure:
            return BatchResult(created=[], errors=[failure])
        self.registrations.extend(registrations)
        return BatchResult(created=list(registrations), errors=[])

    def update_event_date_range(self, event: EventInfo, start: datetime, end: datetime) -> BatchResult[EventInfo]:
        failure = self._enter("update_event_date_range")
        if failure:
            return BatchResult(created=[], errors=[failure])
        self.event_updates.append((event.id, start, end))
        updated = EventInfo(id=event.id, name=event.name, start_date=start.date(), end_date=end.date())
        return BatchResult(created=[updated], errors=[])

    def refresh_cached_views(self, event: EventInfo) -> BatchResult[str]:
        failure = self._enter("refresh_cached_views")
        if failure:
            return BatchResult(created=[], errors=[failure])
        self.refresh_count += 1
        return BatchResult(created=["<memory>"], errors=[])

    def fetch_event(self, event: EventInfo) -> EventInfo:
        if not self.event_updates:
            return event
        _, start, end = self.event_updates[-1]
        return EventInfo(id=event.id, name=event.name, start_date=start.date(), end_date=end.date())
