from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from schedule_importer.db.gateway import PersistenceError
from schedule_importer.db.memory import InMemoryGateway
from schedule_importer.logging.error_log import ErrorLogBuffer
from schedule_importer.models.schedule import ParsedBooth, ParsedSchedule, ParsedSession
from schedule_importer.models.sheet import Sheet
from schedule_importer.services.orchestrator import (
    ImportInProgressError,
    ImportOrchestrator,
    ImportState,
    ImportValidationError,
    validate_unique_keys,
)
from schedule_importer.services.schedule_parser import parse_sheets

NOW = datetime(2024, 4, 20, 8, 15)


def _schedule(grid, sheet="2024-05-01") -> ParsedSchedule:
    return parse_sheets([Sheet(sheet, grid)], workbook="wb.xlsx", clock=lambda: NOW, show_progress=False)


def _orchestrator(gateway, import_config, tmp_path: Path) -> ImportOrchestrator:
    return ImportOrchestrator(gateway, import_config, error_log=ErrorLogBuffer(tmp_path / "logs"), show_progress=False)


SIMPLE_GRID = [
    ["Time", "Booth: A1"],
    ["Kickoff 9:30", "› Acme Corp"],
    ["", "Jane Doe"],
    ["", "› Initech"],
    ["", "Peter Gibbons"],
]


def test_end_to_end_vendor_is_excluded_from_capacity(import_config, tmp_path):
    gateway = InMemoryGateway()
    orch = _orchestrator(gateway, import_config, tmp_path)

    summary = orch.run_import(_schedule(SIMPLE_GRID))

    assert [c.capacity for c in gateway.capacities] == [1]
    assert (summary.registrations.success, summary.registrations.skipped) == (2, 0)
    assert (summary.booths.success, summary.sessions.success, summary.capacities.success) == (1, 1, 1)
    assert summary.attendees.success == 2
    vendors = {f"{a.first_name} {a.last_name}" for a in gateway.attendees.values() if a.is_vendor}
    assert vendors == {"Jane Doe"}
    assert not summary.aborted and not summary.has_problems
    assert summary.phases_completed == ("booths", "sessions", "capacities", "attendees", "registrations", "event")
    # 保存済みの期間と同じなので更新しない
    assert gateway.event_updates == []
    assert gateway.refresh_count == 1
    assert orch.state is ImportState.REPORTED


def test_booth_phase_total_failure_stops_the_run(import_config, tmp_path):
    gateway = InMemoryGateway(failures={"create_booths": "db unavailable"})
    summary = _orchestrator(gateway, import_config, tmp_path).run_import(_schedule(SIMPLE_GRID))

    assert summary.aborted
    assert summary.phases_completed == ()
    assert (summary.booths.success, summary.booths.failed) == (0, 1)
    assert summary.booths.errors == ('Booth "A1": db unavailable',)
    for name in ("sessions", "capacities", "attendees", "registrations", "event"):
        assert summary.entities()[name].success == 0
    assert "create_sessions" not in gateway.calls
    assert gateway.sessions == [] and gateway.registrations == []
    assert "refresh_cached_views" not in gateway.calls


def test_session_phase_total_failure_stops_the_run(import_config, tmp_path):
    gateway = InMemoryGateway(failures={"create_sessions": "constraint violated"})
    summary = _orchestrator(gateway, import_config, tmp_path).run_import(_schedule(SIMPLE_GRID))

    assert summary.aborted
    assert summary.phases_completed == ("booths",)
    assert summary.booths.success == 1
    assert gateway.calls[:2] == ["create_booths", "create_sessions"]
    assert "create_capacity_links" not in gateway.calls


def test_partial_booth_failure_continues(import_config, tmp_path):
    grid = [["Time", "Booth: A1", "Booth: B2"], ["Kickoff 9:30", "› Acme Corp", "› Globex"], ["", "Jane Doe", "Hank Scorpio"]]
    gateway = InMemoryGateway(
        item_failures={"create_booths": lambda b: "bad id" if b.physical_id == "B2" else None}
    )
    summary = _orchestrator(gateway, import_config, tmp_path).run_import(_schedule(grid))

    assert not summary.aborted
    assert (summary.booths.success, summary.booths.failed) == (1, 1)
    assert summary.registrations.skipped == 1
    assert "Skipped reg for Hank Scorpio: Booth ID 'B2' not found." in summary.registrations.errors


def test_validation_gate_rejects_duplicates_before_any_phase(import_config, tmp_path):
    t = datetime(2024, 5, 1, 9, 30)
    schedule = ParsedSchedule(
        sessions=[
            ParsedSession("Kickoff", t, t, sheet_name="2024-05-01", row=3),
            ParsedSession("kickoff", t, t, sheet_name="2024-05-01", row=9),
        ],
        booths=[ParsedBooth("A1")],
    )
    gateway = InMemoryGateway()
    orch = _orchestrator(gateway, import_config, tmp_path)

    with pytest.raises(ImportValidationError) as exc:
        orch.run_import(schedule)
    assert exc.value.row == 9
    assert 'Duplicate session name "kickoff"' in str(exc.value)
    assert gateway.calls == []
    assert orch.state is ImportState.AWAITING_CONFIRMATION


def test_validation_gate_duplicate_booth_ids():
    schedule = ParsedSchedule(booths=[ParsedBooth("A1"), ParsedBooth("B2"), ParsedBooth("a1")])
    with pytest.raises(ImportValidationError, match=r'Duplicate booth physical id "a1" \(booth #3\)'):
        validate_unique_keys(schedule)


def test_busy_flag_blocks_second_run(import_config, tmp_path):
    orch = _orchestrator(InMemoryGateway(), import_config, tmp_path)
    orch._busy = True
    with pytest.raises(ImportInProgressError):
        orch.run_import(_schedule(SIMPLE_GRID))


def test_reentrant_run_is_rejected(import_config, tmp_path):
    class ReentrantGateway(InMemoryGateway):
        orchestrator = None

        def create_booths(self, event, booths):
            self.orchestrator.run_import()
            return super().create_booths(event, booths)

    gateway = ReentrantGateway()
    orch = _orchestrator(gateway, import_config, tmp_path)
    gateway.orchestrator = orch

    summary = orch.run_import(_schedule(SIMPLE_GRID))
    assert summary.aborted
    assert summary.booths.errors == ("booths phase aborted: An import is already in progress.",)
    assert not orch.busy


def test_gateway_exception_ends_run_in_current_phase(import_config, tmp_path):
    gateway = InMemoryGateway(exceptions={"create_registrations": PersistenceError("connection lost")})
    summary = _orchestrator(gateway, import_config, tmp_path).run_import(_schedule(SIMPLE_GRID))

    assert summary.aborted
    assert summary.phases_completed == ("booths", "sessions", "capacities", "attendees")
    assert summary.registrations.errors == ("registrations phase aborted: connection lost",)
    assert "update_event_date_range" not in gateway.calls
    assert gateway.refresh_count == 0


def test_attendee_email_collision_skips_registration(import_config, tmp_path):
    grid = [
        ["Time", "Booth: A1", "Booth: B2"],
        ["Kickoff 9:30", "› Visitors Inc", "› Others Ltd"],
        ["", "Jane Doe", "Jane Doe"],
    ]
    gateway = InMemoryGateway()
    summary = _orchestrator(gateway, import_config, tmp_path).run_import(_schedule(grid))

    assert summary.attendees.success == 2
    assert len(gateway.attendees) == 1
    assert summary.registrations.success == 1
    assert summary.registrations.skipped == 1
    assert summary.registrations.errors == (
        "Skipped reg for Jane Doe: Corresponding attendee profile not found/created.",
    )
    assert summary.has_problems


def test_vendor_marking_failure_is_reported(import_config, tmp_path):
    gateway = InMemoryGateway(failures={"mark_attendees_as_vendor": "permission denied"})
    summary = _orchestrator(gateway, import_config, tmp_path).run_import(_schedule(SIMPLE_GRID))

    assert summary.attendees.errors == ("Failed to mark vendors: permission denied",)
    assert summary.attendees.failed == 0
    assert not summary.aborted


def test_failsafe_vendor_excluded_from_capacity(import_config, tmp_path):
    # is_vendor が手修正で落ちても、ブースの会社名と所属が一致すれば vendor 扱い
    grid = [
        ["Time", "Booth: A1"],
        ["Kickoff 9:30", "› Acme Corp"],
        ["", "› Initech"],
        ["", "Peter Gibbons"],
        ["", "› Acme Corp"],
        ["", "Jane Doe"],
    ]
    schedule = _schedule(grid)
    jane = next(r for r in schedule.registrations if r.last_name == "Doe")
    jane.is_vendor = False  # parser flag lost while the schedule was hand-edited

    gateway = InMemoryGateway()
    _orchestrator(gateway, import_config, tmp_path).run_import(schedule)

    assert [c.capacity for c in gateway.capacities] == [1]
    vendors = {a.last_name for a in gateway.attendees.values() if a.is_vendor}
    assert vendors == {"Doe"}


def test_event_date_range_is_updated_when_different(import_config, tmp_path):
    gateway = InMemoryGateway()
    summary = _orchestrator(gateway, import_config, tmp_path).run_import(_schedule(SIMPLE_GRID, sheet="2024-05-03"))

    assert len(gateway.event_updates) == 1
    event_id, start, end = gateway.event_updates[0]
    assert event_id == 7
    assert (start, end) == (datetime(2024, 5, 3, 9, 30), datetime(2024, 5, 3, 10, 0))
    assert summary.event.success == 1


def test_refresh_failure_does_not_change_summary(import_config, tmp_path):
    gateway = InMemoryGateway(failures={"refresh_cached_views": "view missing"})
    orch = _orchestrator(gateway, import_config, tmp_path)
    summary = orch.run_import(_schedule(SIMPLE_GRID))

    assert not summary.has_problems
    log_files = list((tmp_path / "logs").glob("errors-*.log"))
    assert len(log_files) == 1
    records = [json.loads(line) for line in log_files[0].read_text(encoding="utf-8").splitlines()]
    assert [r["error_type"] for r in records] == ["VIEW_REFRESH_ERROR"]


def test_phase_errors_are_written_to_error_log(import_config, tmp_path):
    gateway = InMemoryGateway(failures={"create_booths": "db unavailable"})
    _orchestrator(gateway, import_config, tmp_path).run_import(_schedule(SIMPLE_GRID))

    log_file = next((tmp_path / "logs").glob("errors-*.log"))
    record = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
    assert record["sheet"] == "<BOOTHS>"
    assert record["row"] == -1
    assert record["error_type"] == "IMPORT_PHASE_ERROR"
    assert record["workbook"] == "schedule.xlsx"


def test_parse_then_import(import_config, tmp_path, make_workbook, day_grid):
    make_workbook(Path(import_config.source_workbook), {"2024-05-01": day_grid, "Notes": [["misc"]]})
    gateway = InMemoryGateway()
    orch = _orchestrator(gateway, import_config, tmp_path)
    assert orch.state is ImportState.IDLE

    schedule = orch.parse()
    assert orch.state is ImportState.AWAITING_CONFIRMATION
    assert len(schedule.errors) == 1

    summary = orch.run_import()
    assert summary.sessions.success == 2
    assert summary.capacities.success == 4
    assert sorted(c.capacity for c in gateway.capacities) == [0, 0, 1, 1]
    assert summary.registrations.success == 4
    # パースエラーもエラーログに残る
    log_file = next((tmp_path / "logs").glob("errors-*.log"))
    assert "SHEET_HEADER_ERROR" in log_file.read_text(encoding="utf-8")


def test_run_without_schedule_is_an_error(import_config, tmp_path):
    with pytest.raises(ValueError):
        _orchestrator(InMemoryGateway(), import_config, tmp_path).run_import()
