from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pytest

import schedule_importer.cli.__main__ as cli
from schedule_importer.db.memory import InMemoryGateway

"""Integration: successful multi-day run through the CLI.

Real .xlsx written with openpyxl, DB replaced by the in-memory gateway. Checks the
persisted record sets, renamed duplicate sessions, the event date range update and
the SUMMARY line.
"""

MARK = "›"


@pytest.fixture
def captured_gateway(monkeypatch) -> dict[str, Any]:
    holder: dict[str, Any] = {}

    def factory(*args, **kwargs):
        holder["gateway"] = InMemoryGateway(*args, **kwargs)
        return holder["gateway"]

    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    monkeypatch.setattr(cli, "InMemoryGateway", factory)
    return holder


@pytest.fixture
def two_day_workbook(temp_workdir: Path, make_workbook, day_grid) -> Path:
    day_two = [
        ["Time", "Booth: A1", "Booth: B2"],
        ["Kickoff 9:30", f"{MARK} Acme Corp", f"{MARK} Globex"],
        ["", "Jane Doe", f"{MARK} Initech"],
        ["", "", "Peter Gibbons"],
        ["Closing 16:00", "", f"{MARK} Globex"],
        ["", "", f"{MARK} Initrode"],
        ["", "", "Samir Nagheenanajar"],
    ]
    return make_workbook(
        temp_workdir / "data" / "schedule.xlsx",
        {"2024-05-01": day_grid, "2024-05-02": day_two, "Notes": [["call the caterer"]]},
    )


def test_two_day_import(write_config, two_day_workbook, captured_gateway, temp_workdir, capsys):
    code = cli.main(["--config", str(write_config), "--yes"])
    out = capsys.readouterr().out
    gateway: InMemoryGateway = captured_gateway["gateway"]

    # Notes シートのヘッダ欠落はソフトエラーなので成功扱い
    assert code == 0
    summary = [line for line in out.splitlines() if line.startswith("SUMMARY ")]
    assert len(summary) == 1
    assert summary[0].startswith(
        "SUMMARY booths=2/0 sessions=4/0 capacities=8/0 attendees=5/0 registrations=7/0/0 "
    )

    names = [s.name for s in gateway.sessions]
    assert names[0] == "Kickoff 9:30"
    assert "Kickoff 9:30 (May 2)" in names
    assert {s.start_time.date() for s in gateway.sessions} == {date(2024, 5, 1), date(2024, 5, 2)}

    # 同一人物は二日目も同じ attendee に解決される
    assert len(gateway.attendees) == 5
    jane_regs = [r for r in gateway.registrations if r.attendee_id == gateway.attendees["jane.doe@noemail.local"].id]
    assert len(jane_regs) == 2

    # vendor (Acme の Jane / Globex の Hank) は定員に数えない
    vendors = sorted(a.last_name for a in gateway.attendees.values() if a.is_vendor)
    assert vendors == ["Doe", "Scorpio"]
    assert sum(c.capacity for c in gateway.capacities) == 4

    assert gateway.event_updates == [(7, datetime(2024, 5, 1, 9, 30), datetime(2024, 5, 2, 16, 30))]
    assert gateway.refresh_count == 1

    log_file = next((temp_workdir / "logs").glob("errors-*.log"))
    types = [json.loads(line)["error_type"] for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert "SHEET_HEADER_ERROR" in types
    assert "DUPLICATE_SESSION_NAME" in types
