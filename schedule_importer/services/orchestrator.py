from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from ..db.gateway import PersistenceGateway
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportConfig
from ..models.error_record import ErrorRecord
from ..models.import_summary import ENTITY_CLASSES, EntityTally, ImportSummary
from ..models.records import BatchResult, BoothRecord, EventInfo, SessionRecord
from ..models.schedule import ParsedSchedule, RegistrationCandidate
from .attendee_identity import booth_company_map, collapse_identities, is_vendor_candidate
from .capacity import build_capacity_links, count_registrations
from .fk_resolution import (
    FKResolutionError,
    ForeignKeyMaps,
    build_attendee_map,
    build_booth_map,
    build_session_map,
    resolve_registration,
)
from .progress import PhaseProgress
from .schedule_parser import parse_workbook

"""Import orchestration.

One ImportOrchestrator drives a workbook through

    Idle -> Parsing -> AwaitingConfirmation -> Importing -> Reported

The import itself is six strictly sequential phases against a PersistenceGateway:

    1 booths  2 sessions  3 capacities  4 attendees  5 registrations  6 event dates

Booth and session phases are fatal when they create nothing and report errors; the
later phases record their failures and keep going. Nothing is rolled back across
phases: whatever an earlier phase created stays persisted. A gateway exception ends
the run early and is recorded against the phase that was running.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ImportState",
    "ImportValidationError",
    "ImportInProgressError",
    "validate_unique_keys",
    "ImportOrchestrator",
]


class ImportState(Enum):
    IDLE = "idle"
    PARSING = "parsing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    IMPORTING = "importing"
    REPORTED = "reported"


class ImportValidationError(Exception):
    """Parsed schedule still has duplicate keys; nothing was imported."""

    def __init__(self, message: str, *, sheet: str | None = None, row: int | None = None) -> None:
        super().__init__(message)
        self.sheet = sheet
        self.row = row


class ImportInProgressError(Exception):
    """A second import was started while one is running."""


def validate_unique_keys(schedule: ParsedSchedule) -> None:
    """Reject duplicate session names or booth physical ids (case-insensitive).

    Raises
    ------
    ImportValidationError: pointing at the first offending row.
    """
    seen_sessions: set[str] = set()
    for session in schedule.sessions:
        key = session.name.lower()
        if key in seen_sessions:
            raise ImportValidationError(
                f'Duplicate session name "{session.name}" at sheet "{session.sheet_name}", '
                f"row {session.row}. Rename it before importing.",
                sheet=session.sheet_name,
                row=session.row,
            )
        seen_sessions.add(key)

    seen_booths: set[str] = set()
    for index, booth in enumerate(schedule.booths, start=1):
        key = booth.physical_id.lower()
        if key in seen_booths:
            raise ImportValidationError(
                f'Duplicate booth physical id "{booth.physical_id}" (booth #{index}). '
                "Fix the header before importing.",
                row=index,
            )
        seen_booths.add(key)


@dataclass
class _ImportRun:
    """State scoped to one import run."""
    schedule: ParsedSchedule
    event: EventInfo
    tallies: dict[str, EntityTally] = field(default_factory=lambda: {n: EntityTally() for n in ENTITY_CLASSES})
    maps: ForeignKeyMaps = field(default_factory=ForeignKeyMaps)
    booths: list[BoothRecord] = field(default_factory=list)
    sessions: list[SessionRecord] = field(default_factory=list)
    booth_companies: dict[str, str] = field(default_factory=dict)

    def is_vendor(self, candidate: RegistrationCandidate) -> bool:
        return is_vendor_candidate(candidate, self.booth_companies)


def _apply(tally: EntityTally, requested: int, result: BatchResult[Any]) -> None:
    tally.success += len(result.created)
    if result.errors:
        tally.failed += max(requested - len(result.created), 0)
        tally.errors.extend(result.errors)


class ImportOrchestrator:
    """Parse, confirm and import one event schedule workbook."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        config: ImportConfig,
        *,
        error_log: ErrorLogBuffer | None = None,
        clock: Callable[[], datetime] | None = None,
        show_progress: bool = True,
    ) -> None:
        self.gateway = gateway
        self.config = config
        self.error_log = error_log if error_log is not None else ErrorLogBuffer(Path(config.logs_directory))
        self._clock = clock or (lambda: datetime.now(UTC))
        self.show_progress = show_progress
        self.state = ImportState.IDLE
        self.schedule: ParsedSchedule | None = None
        self.summary: ImportSummary | None = None
        self.workbook_name = Path(config.source_workbook).name
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def parse(self, path: Path | str | None = None) -> ParsedSchedule:
        """Parse the workbook and wait for confirmation."""
        workbook = Path(path) if path is not None else Path(self.config.source_workbook)
        self.workbook_name = workbook.name
        self.state = ImportState.PARSING
        try:
            schedule = parse_workbook(workbook, config=self.config.parser, show_progress=self.show_progress)
        except Exception:
            self.state = ImportState.IDLE
            raise
        self.error_log.extend(schedule.error_records)
        return self.load(schedule)

    def load(self, schedule: ParsedSchedule) -> ParsedSchedule:
        """Accept an already parsed (possibly hand-corrected) schedule."""
        self.schedule = schedule
        self.summary = None
        self.state = ImportState.AWAITING_CONFIRMATION
        return schedule

    def run_import(self, schedule: ParsedSchedule | None = None, *, event: EventInfo | None = None) -> ImportSummary:
        """Run the six import phases and return the frozen summary.

        Raises
        ------
        ImportInProgressError: another run is active on this orchestrator.
        ImportValidationError: duplicate keys; no phase ran.
        """
        if self._busy:
            raise ImportInProgressError("An import is already in progress.")
        if schedule is not None:
            self.load(schedule)
        if self.schedule is None:
            raise ValueError("nothing to import: parse() or load() a schedule first")

        validate_unique_keys(self.schedule)

        self._busy = True
        self.state = ImportState.IMPORTING
        try:
            summary = self._import(_ImportRun(schedule=self.schedule, event=event or self.config.event))
        finally:
            self._busy = False
        self.summary = summary
        self.state = ImportState.REPORTED
        log_path = self.error_log.flush()
        if log_path is not None:
            logger.info("error log written: %s", log_path)
        return summary

    def _phases(self) -> list[tuple[str, Callable[[_ImportRun], bool]]]:
        return [
            ("booths", self._phase_booths),
            ("sessions", self._phase_sessions),
            ("capacities", self._phase_capacities),
            ("attendees", self._phase_attendees),
            ("registrations", self._phase_registrations),
            ("event", self._phase_event_dates),
        ]

    def _import(self, run: _ImportRun) -> ImportSummary:
        start_time = self._clock()
        completed: list[str] = []
        aborted = False

        with PhaseProgress(len(ENTITY_CLASSES), description="Importing") as progress:
            for name, phase in self._phases():
                progress.start_phase(name)
                tally = run.tallies[name]
                try:
                    keep_going = phase(run)
                except Exception as e:  # ゲートウェイ例外は run を打ち切る
                    logger.exception("phase %s raised", name)
                    tally.errors.append(f"{name} phase aborted: {e}")
                    keep_going = False
                progress.finish_phase(ok=tally.success, failed=tally.failed, skipped=tally.skipped)
                self._record_phase_errors(name, tally)
                logger.info(
                    "phase %s: success=%d failed=%d skipped=%d",
                    name, tally.success, tally.failed, tally.skipped,
                )
                if not keep_going:
                    aborted = True
                    logger.error("import stopped after %s phase", name)
                    break
                completed.append(name)

        # 打ち切られた run ではビューを更新しない
        if not aborted:
            self._refresh_views(run.event)

        tallies = run.tallies
        return ImportSummary(
            booths=tallies["booths"].freeze(),
            sessions=tallies["sessions"].freeze(),
            capacities=tallies["capacities"].freeze(),
            attendees=tallies["attendees"].freeze(),
            registrations=tallies["registrations"].freeze(),
            event=tallies["event"].freeze(),
            start_time=start_time,
            end_time=self._clock(),
            aborted=aborted,
            phases_completed=tuple(completed),
        )

    def _record_phase_errors(self, name: str, tally: EntityTally) -> None:
        for message in tally.errors:
            error_type = "REGISTRATION_SKIPPED" if message.startswith("Skipped reg") else "IMPORT_PHASE_ERROR"
            self.error_log.append(
                ErrorRecord.create(
                    workbook=self.workbook_name,
                    sheet=f"<{name.upper()}>",
                    row=-1,
                    error_type=error_type,
                    message=message,
                )
            )

    def _refresh_views(self, event: EventInfo) -> None:
        try:
            result = self.gateway.refresh_cached_views(event)
        except Exception as e:  # ビュー更新失敗は取り込み結果に影響させない
            logger.exception("cached view refresh raised")
            result = BatchResult(created=[], errors=[str(e)])
        for message in result.errors:
            logger.warning("cached view refresh failed: %s", message)
            self.error_log.append(
                ErrorRecord.create(
                    workbook=self.workbook_name,
                    sheet="<REFRESH>",
                    row=-1,
                    error_type="VIEW_REFRESH_ERROR",
                    message=message,
                )
            )

    # -- phases ---------------------------------------------------------------
    # Each returns False when the run must stop.

    def _phase_booths(self, run: _ImportRun) -> bool:
        booths = run.schedule.booths
        result = self.gateway.create_booths(run.event, booths)
        _apply(run.tallies["booths"], len(booths), result)
        run.booths = list(result.created)
        run.maps.booths = build_booth_map(run.booths)
        run.booth_companies = booth_company_map(run.booths)
        return not result.total_failure

    def _phase_sessions(self, run: _ImportRun) -> bool:
        sessions = run.schedule.sessions
        result = self.gateway.create_sessions(run.event, sessions)
        _apply(run.tallies["sessions"], len(sessions), result)
        run.sessions = list(result.created)
        run.maps.sessions = build_session_map(run.sessions)
        return not result.total_failure

    def _phase_capacities(self, run: _ImportRun) -> bool:
        counts = count_registrations(run.schedule.registrations, run.maps, run.is_vendor)
        links = build_capacity_links(run.sessions, run.booths, counts)
        if links:
            result = self.gateway.create_capacity_links(run.event, links)
            _apply(run.tallies["capacities"], len(links), result)
        return True

    def _phase_attendees(self, run: _ImportRun) -> bool:
        tally = run.tallies["attendees"]
        identities = collapse_identities(run.schedule.registrations, run.booth_companies)
        if not identities:
            return True
        result = self.gateway.find_or_create_attendees(run.event, list(identities.values()))
        _apply(tally, len(identities), result)
        run.maps.attendees = build_attendee_map(result.created)

        vendor_ids: list[Any] = []
        for key, identity in identities.items():
            attendee_id = run.maps.attendee_id(key)
            if identity.is_vendor and attendee_id is not None and attendee_id not in vendor_ids:
                vendor_ids.append(attendee_id)
        if vendor_ids:
            marked = self.gateway.mark_attendees_as_vendor(vendor_ids)
            if marked.errors:
                tally.errors.append(f"Failed to mark vendors: {'; '.join(marked.errors)}")
        return True

    def _phase_registrations(self, run: _ImportRun) -> bool:
        tally = run.tallies["registrations"]
        records = []
        for candidate in run.schedule.registrations:
            try:
                records.append(resolve_registration(candidate, run.maps, run.event.id))
            except FKResolutionError as e:
                tally.skipped += 1
                tally.errors.append(f"Skipped reg for {candidate.display_name}: {e}")
        if records:
            result = self.gateway.create_registrations(records)
            _apply(tally, len(records), result)
        return True

    def _phase_event_dates(self, run: _ImportRun) -> bool:
        sessions = run.schedule.sessions
        if not sessions:
            return True
        start = min(s.start_time for s in sessions)
        end = max(s.end_time for s in sessions)
        stored = (run.event.start_date, run.event.end_date)
        if stored == (start.date(), end.date()):
            logger.debug("event date range unchanged: %s..%s", *stored)
            return True
        result = self.gateway.update_event_date_range(run.event, start, end)
        _apply(run.tallies["event"], 1, result)
        return True
