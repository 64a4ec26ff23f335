from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..excel.grid import clean_text
from ..models.config_models import DEFAULT_COMPANY_MARKERS
from ..models.schedule import RegistrationCandidate, split_person_name
from ..models.sheet import BoothColumn, SessionBlock, Sheet, cell_text
from .parse_state import ParseAccumulator

"""Registration extraction for one (session block, booth column) cell range.

Cells are read top to bottom:

- ``› Acme Corp``  company marker. The first marker of the block is the booth's
  vendor; any later marker switches the company of the people listed below it.
- ``Jane Q Public`` person row. Last token is the surname, the rest the first name.
  The person belongs to the latest company marker; people listed under the
  booth's own vendor are vendor staff.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "BlockCompanyState",
    "is_company_marker",
    "split_person_name",
    "extract_block_registrations",
]


@dataclass
class BlockCompanyState:
    """Rolling company context while scanning one block column."""
    current_vendor: str | None = None
    current_attendee_company: str | None = None

    def see_company(self, company: str) -> bool:
        """Record a company marker; True when it is the block's first (the vendor)."""
        first = self.current_vendor is None
        if first:
            self.current_vendor = company
        self.current_attendee_company = company
        return first

    @property
    def organization(self) -> str | None:
        return self.current_attendee_company or self.current_vendor


def is_company_marker(text: str, markers: Iterable[str] = DEFAULT_COMPANY_MARKERS) -> bool:
    return any(text.startswith(m) for m in markers)


def extract_block_registrations(
    sheet: Sheet,
    block: SessionBlock,
    booth: BoothColumn,
    session_name: str,
    acc: ParseAccumulator,
    markers: Iterable[str] = DEFAULT_COMPANY_MARKERS,
) -> list[RegistrationCandidate]:
    """Scan rows [block.start_row, block.end_row) under ``booth``'s column.

    New candidates are appended to ``acc.schedule.registrations`` and also returned.
    Duplicates of an already emitted (session, first, last, organization) key are dropped.
    """
    markers = tuple(markers)
    state = BlockCompanyState()
    emitted: list[RegistrationCandidate] = []

    for r in range(block.start_row, block.end_row):
        text = cell_text(sheet.cell(r, booth.col_index))
        if not text:
            continue

        if is_company_marker(text, markers):
            company = clean_text(text, markers)
            if not company:
                continue
            if state.see_company(company):
                acc.seed_booth_company(booth.physical_id, company)
            continue

        person = clean_text(text, markers)
        first_name, last_name = split_person_name(person)
        if not last_name:
            continue

        organization = state.organization
        if not organization:
            acc.add_error(
                f'Sheet "{sheet.name}", Row {r + 1}, Booth {booth.physical_id}: '
                f"Found person '{person}' without a preceding company ('›' symbol) in this time block.",
                sheet=sheet.name,
                row=r + 1,
                error_type="PERSON_WITHOUT_COMPANY",
            )
            continue

        candidate = RegistrationCandidate(
            session_name=session_name,
            first_name=first_name,
            last_name=last_name,
            organization=organization,
            is_vendor=(state.current_vendor == organization),
            expected_booth_physical_id=booth.physical_id,
        )
        if candidate.dedup_key in acc.registration_keys:
            logger.debug("duplicate registration dropped key=%s", candidate.dedup_key)
            continue
        acc.registration_keys.add(candidate.dedup_key)
        acc.schedule.registrations.append(candidate)
        emitted.append(candidate)

    return emitted
