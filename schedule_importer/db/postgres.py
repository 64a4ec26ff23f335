from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import psycopg2

from ..models.config_models import DatabaseConfig
from ..models.records import (
    AttendeeRecord,
    BatchResult,
    BoothRecord,
    CapacityLink,
    EventInfo,
    RegistrationRecord,
    SessionRecord,
)
from ..models.schedule import ParsedBooth, ParsedSession, split_person_name
from .batch_insert import BatchInsertError, BatchMetrics, batch_insert
from .gateway import AttendeeInput, PersistenceError
from .memory import synthesized_email

"""PostgreSQL persistence gateway (psycopg2).

Tables touched:
    booths(id, event_id, physical_id, company_name)
    sessions(id, event_id, name, start_time, end_time)
    session_booth_capacities(session_id, booth_id, capacity)
    attendees(id, name, email, organization, is_vendor)
    event_attendees(event_id, attendee_id)
    session_registrations(event_id, session_id, attendee_id, expected_booth_id, status)
    events(id, name, start_date, end_date)

Every gateway call is its own transaction. Statement level failures (constraint
violations, bad data) are reported as BatchResult errors; connection level failures
raise PersistenceError and end the import run.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "resolve_dsn",
    "connect",
    "PostgresGateway",
]

# 接続自体が壊れている場合はリトライしても無駄なので run を止める
_FATAL_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError)


def _log_batch_metrics(metrics: BatchMetrics) -> None:
    logger.debug(
        "batch insert table=%s rows=%d elapsed_sec=%.4f",
        metrics.table, metrics.batch_size, metrics.elapsed_seconds,
    )


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build the connection string.

    Order: DATABASE_URL / PGDSN, then individual PG* variables, then the
    ``database`` section of the config file.
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def connect(db_cfg: DatabaseConfig) -> Iterator[Any]:
    """Yield an open psycopg2 connection (autocommit off); closed on exit."""
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    conn.autocommit = False
    try:
        yield conn
    finally:
        if not conn.closed:
            conn.close()


class PostgresGateway:
    def __init__(self, conn: Any, *, timezone: str = "UTC", cached_views: Sequence[str] = ()) -> None:
        self._conn = conn
        self._tz = ZoneInfo(timezone)
        self._cached_views = tuple(cached_views)

    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        cur = self._conn.cursor()
        try:
            yield cur
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise
        finally:
            cur.close()

    def _aware(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self._tz)
        return value

    def _fatal(self, op: str, e: Exception) -> PersistenceError:
        logger.error("%s: connection failure: %s", op, e)
        return PersistenceError(f"{op}: {e}")

    def create_booths(self, event: EventInfo, booths: Sequence[ParsedBooth]) -> BatchResult[BoothRecord]:
        rows = [(event.id, b.physical_id, b.display_company) for b in booths]
        try:
            with self._transaction() as cur:
                result = batch_insert(
                    cur,
                    "booths",
                    ["event_id", "physical_id", "company_name"],
                    rows,
                    returning=["id", "physical_id", "company_name"],
                    metrics_callback=_log_batch_metrics,
                )
        except _FATAL_ERRORS as e:
            raise self._fatal("create_booths", e) from e
        except BatchInsertError as e:
            return BatchResult(created=[], errors=[f"Booth insert failed: {e}"])
        created = [BoothRecord(id=r[0], physical_id=r[1], company_name=r[2]) for r in result.returned_values or []]
        return BatchResult(created=created, errors=[])

    def create_sessions(self, event: EventInfo, sessions: Sequence[ParsedSession]) -> BatchResult[SessionRecord]:
        rows = [(event.id, s.name, self._aware(s.start_time), self._aware(s.end_time)) for s in sessions]
        try:
            with self._transaction() as cur:
                result = batch_insert(
                    cur,
                    "sessions",
                    ["event_id", "name", "start_time", "end_time"],
                    rows,
                    returning=["id", "name", "start_time", "end_time"],
                    metrics_callback=_log_batch_metrics,
                )
        except _FATAL_ERRORS as e:
            raise self._fatal("create_sessions", e) from e
        except BatchInsertError as e:
            return BatchResult(created=[], errors=[f"Session insert failed: {e}"])
        created = [
            SessionRecord(id=r[0], name=r[1], start_time=r[2], end_time=r[3])
            for r in result.returned_values or []
        ]
        return BatchResult(created=created, errors=[])

    def create_capacity_links(self, event: EventInfo, links: Sequence[CapacityLink]) -> BatchResult[CapacityLink]:
        rows = [(link.session_id, link.booth_id, link.capacity) for link in links]
        try:
            with self._transaction() as cur:
                batch_insert(
                    cur,
                    "session_booth_capacities",
                    ["session_id", "booth_id", "capacity"],
                    rows,
                    metrics_callback=_log_batch_metrics,
                )
        except _FATAL_ERRORS as e:
            raise self._fatal("create_capacity_links", e) from e
        except BatchInsertError as e:
            return BatchResult(created=[], errors=[f"Capacity insert failed: {e}"])
        return BatchResult(created=list(links), errors=[])

    def find_or_create_attendees(
        self, event: EventInfo, attendees: Sequence[AttendeeInput]
    ) -> BatchResult[AttendeeRecord]:
        """Match by synthesized e-mail, insert when missing, then link all to the event.

        Each attendee runs under its own savepoint so one bad row does not abort
        the rest of the batch.
        """
        created: list[AttendeeRecord] = []
        errors: list[str] = []
        try:
            with self._transaction() as cur:
                for attendee in attendees:
                    full_name = f"{attendee.first_name} {attendee.last_name}".strip()
                    email = synthesized_email(attendee.first_name, attendee.last_name)
                    cur.execute("SAVEPOINT attendee_item")
                    try:
                        cur.execute(
                            "SELECT id, name, organization, is_vendor FROM attendees WHERE email = %s",
                            (email,),
                        )
                        row = cur.fetchone()
                        if row is None:
                            cur.execute(
                                "INSERT INTO attendees (name, email, organization) VALUES (%s, %s, %s) "
                                "RETURNING id, name, organization, is_vendor",
                                (full_name, email, attendee.organization),
                            )
                            row = cur.fetchone()
                    except _FATAL_ERRORS:
                        raise
                    except psycopg2.Error as e:
                        cur.execute("ROLLBACK TO SAVEPOINT attendee_item")
                        errors.append(f"Failed to create {full_name}: {e}")
                        continue
                    cur.execute("RELEASE SAVEPOINT attendee_item")
                    first_name, last_name = split_person_name(row[1] or "")
                    created.append(
                        AttendeeRecord(
                            id=row[0],
                            first_name=first_name,
                            last_name=last_name,
                            organization=row[2] or "",
                            is_vendor=bool(row[3]),
                        )
                    )
                # 同一 attendee が複数回返ることがあるので重複を落としてからイベントに紐付け
                linked = list(dict.fromkeys(a.id for a in created))
                batch_insert(
                    cur,
                    "event_attendees",
                    ["event_id", "attendee_id"],
                    [(event.id, attendee_id) for attendee_id in linked],
                    on_conflict="ON CONFLICT (event_id, attendee_id) DO NOTHING",
                    metrics_callback=_log_batch_metrics,
                )
        except _FATAL_ERRORS as e:
            raise self._fatal("find_or_create_attendees", e) from e
        except BatchInsertError as e:
            return BatchResult(created=[], errors=[f"Event attendee link failed: {e}"])
        return BatchResult(created=created, errors=errors)

    def mark_attendees_as_vendor(self, attendee_ids: Sequence[Any]) -> BatchResult[Any]:
        ids = list(attendee_ids)
        if not ids:
            return BatchResult(created=[], errors=[])
        try:
            with self._transaction() as cur:
                cur.execute("UPDATE attendees SET is_vendor = TRUE WHERE id = ANY(%s)", (ids,))
        except _FATAL_ERRORS as e:
            raise self._fatal("mark_attendees_as_vendor", e) from e
        except psycopg2.Error as e:
            return BatchResult(created=[], errors=[str(e)])
        return BatchResult(created=ids, errors=[])

    def create_registrations(self, registrations: Sequence[RegistrationRecord]) -> BatchResult[RegistrationRecord]:
        rows = [
            (r.event_id, r.session_id, r.attendee_id, r.expected_booth_id, r.status)
            for r in registrations
        ]
        try:
            with self._transaction() as cur:
                batch_insert(
                    cur,
                    "session_registrations",
                    ["event_id", "session_id", "attendee_id", "expected_booth_id", "status"],
                    rows,
                    metrics_callback=_log_batch_metrics,
                )
        except _FATAL_ERRORS as e:
            raise self._fatal("create_registrations", e) from e
        except BatchInsertError as e:
            return BatchResult(created=[], errors=[f"Registration insert failed: {e}"])
        return BatchResult(created=list(registrations), errors=[])

    def update_event_date_range(self, event: EventInfo, start: datetime, end: datetime) -> BatchResult[EventInfo]:
        try:
            with self._transaction() as cur:
                cur.execute(
                    "UPDATE events SET start_date = %s, end_date = %s WHERE id = %s",
                    (start.date(), end.date(), event.id),
                )
                if cur.rowcount == 0:
                    return BatchResult(created=[], errors=[f"Event {event.id} not found"])
        except _FATAL_ERRORS as e:
            raise self._fatal("update_event_date_range", e) from e
        except psycopg2.Error as e:
            return BatchResult(created=[], errors=[str(e)])
        updated = EventInfo(id=event.id, name=event.name, start_date=start.date(), end_date=end.date())
        return BatchResult(created=[updated], errors=[])

    def refresh_cached_views(self, event: EventInfo) -> BatchResult[str]:
        refreshed: list[str] = []
        errors: list[str] = []
        for view in self._cached_views:
            quoted = ".".join(f'"{part}"' for part in view.split("."))
            try:
                with self._transaction() as cur:
                    cur.execute(f"REFRESH MATERIALIZED VIEW {quoted}")
            except _FATAL_ERRORS as e:
                raise self._fatal("refresh_cached_views", e) from e
            except psycopg2.Error as e:
                errors.append(f"{view}: {e}")
                continue
            refreshed.append(view)
        return BatchResult(created=refreshed, errors=errors)

    def fetch_event(self, event: EventInfo) -> EventInfo:
        """Reload the stored name and date range of ``event``."""
        try:
            with self._transaction() as cur:
                cur.execute("SELECT id, name, start_date, end_date FROM events WHERE id = %s", (event.id,))
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise self._fatal("fetch_event", e) from e
        if row is None:
            raise PersistenceError(f"event {event.id} not found")
        return EventInfo(id=row[0], name=row[1], start_date=row[2], end_date=row[3])
