from __future__ import annotations

from datetime import datetime

from schedule_importer.models.records import BoothRecord, SessionRecord
from schedule_importer.models.schedule import RegistrationCandidate
from schedule_importer.services.capacity import build_capacity_links, count_registrations
from schedule_importer.services.fk_resolution import ForeignKeyMaps, build_booth_map, build_session_map

T = datetime(2024, 5, 1, 9, 0)


def _reg(session, first, booth, *, vendor=False, org="Visitor Co"):
    return RegistrationCandidate(
        session_name=session,
        first_name=first,
        last_name="Tester",
        organization=org,
        is_vendor=vendor,
        expected_booth_physical_id=booth,
    )


def _setup():
    sessions = [SessionRecord(id=s, name=s, start_time=T, end_time=T) for s in ("S1", "S2")]
    booths = [BoothRecord(id=b, physical_id=b, company_name=None) for b in ("B1", "B2", "B3")]
    maps = ForeignKeyMaps(sessions=build_session_map(sessions), booths=build_booth_map(booths))
    return sessions, booths, maps


def test_two_by_three_grid():
    sessions, booths, maps = _setup()
    regs = [_reg("S1", "A", "B1"), _reg("S1", "B", "B1"), _reg("S2", "C", "B3")]

    counts = count_registrations(regs, maps, lambda c: c.is_vendor)
    links = build_capacity_links(sessions, booths, counts)

    assert len(links) == 6
    capacities = {(l.session_id, l.booth_id): l.capacity for l in links}
    assert capacities == {
        ("S1", "B1"): 2, ("S1", "B2"): 0, ("S1", "B3"): 0,
        ("S2", "B1"): 0, ("S2", "B2"): 0, ("S2", "B3"): 1,
    }


def test_vendors_and_unresolved_rows_are_not_counted():
    sessions, booths, maps = _setup()
    regs = [
        _reg("S1", "A", "B1", vendor=True),
        _reg("S1", "B", "b1"),  # physical id lookup ignores case
        _reg("S9", "C", "B1"),  # unknown session
        _reg("S1", "D", "B7"),  # unknown booth
        _reg("S1", "E", None),
    ]
    counts = count_registrations(regs, maps, lambda c: c.is_vendor)
    assert dict(counts) == {("S1", "B1"): 1}


def test_no_sessions_means_no_links():
    _, booths, _ = _setup()
    assert build_capacity_links([], booths, count_registrations([], ForeignKeyMaps(), lambda c: False)) == []
