from __future__ import annotations

from dataclasses import dataclass, field

from ..models.error_record import ErrorRecord
from ..models.schedule import ParsedBooth, ParsedSchedule
from .name_dedup import NameDeduplicator

"""Per-run parse accumulator.

Everything the parser needs to remember across sheets and blocks (name usage,
known booths and their companies, registration keys already emitted, collected
errors) lives here. A fresh accumulator is created for every workbook parse and
threaded through the sheet/block functions explicitly.
"""

__all__ = [
    "ParseAccumulator",
]


@dataclass
class ParseAccumulator:
    workbook: str = ""
    names: NameDeduplicator = field(default_factory=NameDeduplicator)
    booths: dict[str, ParsedBooth] = field(default_factory=dict)  # physical_id -> booth (workbook order)
    registration_keys: set[str] = field(default_factory=set)
    schedule: ParsedSchedule = field(default_factory=ParsedSchedule)

    def add_error(self, message: str, *, sheet: str = "<WORKBOOK>", row: int = -1, error_type: str = "PARSE_ERROR") -> None:
        self.schedule.errors.append(message)
        self.schedule.error_records.append(
            ErrorRecord.create(
                workbook=self.workbook,
                sheet=sheet,
                row=row,
                error_type=error_type,
                message=message,
            )
        )

    def register_booth(self, physical_id: str) -> ParsedBooth:
        booth = self.booths.get(physical_id)
        if booth is None:
            booth = ParsedBooth(physical_id=physical_id)
            self.booths[physical_id] = booth
        return booth

    def seed_booth_company(self, physical_id: str, company_name: str) -> None:
        """First company name seen for a booth wins."""
        booth = self.register_booth(physical_id)
        if booth.company_name is None:
            booth.company_name = company_name

    def finish(self) -> ParsedSchedule:
        self.schedule.booths = list(self.booths.values())
        return self.schedule
