from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime

import pandas as pd

from .error_record import ErrorRecord

"""Parsed (pre-commit) schedule records.

These are the human-editable record sets produced by the workbook parser. They are
plain mutable dataclasses so a caller can correct names, times or vendor flags
before handing the schedule to the import orchestrator.
"""

__all__ = [
    "ParsedSession",
    "ParsedBooth",
    "RegistrationCandidate",
    "ParsedSchedule",
    "attendee_key",
    "split_person_name",
]


def split_person_name(name: str) -> tuple[str, str]:
    """Split 'First Middle Last' into ('First Middle', 'Last')."""
    parts = name.split()
    if not parts:
        return "", ""
    return " ".join(parts[:-1]), parts[-1]


def attendee_key(first_name: str, last_name: str, organization: str) -> str:
    """Case-insensitive identity key ``first|last|organization``."""
    return f"{first_name.lower()}|{last_name.lower()}|{organization.lower()}"


@dataclass
class ParsedSession:
    name: str
    start_time: datetime
    end_time: datetime
    raw_label: str = ""
    sheet_name: str = ""
    row: int = -1  # 1-based anchor row in the sheet
    time_needs_review: bool = False
    date_needs_review: bool = False
    was_renamed: bool = False
    original_name: str | None = None


@dataclass
class ParsedBooth:
    physical_id: str
    company_name: str | None = None

    @property
    def display_company(self) -> str:
        return self.company_name or f"Location: {self.physical_id}"


@dataclass
class RegistrationCandidate:
    session_name: str
    first_name: str
    last_name: str
    organization: str
    is_vendor: bool
    expected_booth_physical_id: str | None

    @property
    def identity_key(self) -> str:
        return attendee_key(self.first_name, self.last_name, self.organization)

    @property
    def dedup_key(self) -> str:
        return f"{self.session_name.lower()}|{self.identity_key}"

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class ParsedSchedule:
    """Result of parsing one workbook."""
    sessions: list[ParsedSession] = field(default_factory=list)
    booths: list[ParsedBooth] = field(default_factory=list)
    registrations: list[RegistrationCandidate] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    error_records: list[ErrorRecord] = field(default_factory=list)

    @property
    def needs_review(self) -> bool:
        return any(s.time_needs_review or s.date_needs_review or s.was_renamed for s in self.sessions)

    def sessions_frame(self) -> pd.DataFrame:
        columns = [
            "name", "start_time", "end_time", "raw_label", "sheet_name", "row",
            "time_needs_review", "date_needs_review", "was_renamed", "original_name",
        ]
        return pd.DataFrame([asdict(s) for s in self.sessions], columns=columns)

    def booths_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{"physical_id": b.physical_id, "company_name": b.display_company} for b in self.booths],
            columns=["physical_id", "company_name"],
        )

    def registrations_frame(self) -> pd.DataFrame:
        columns = [
            "session_name", "first_name", "last_name", "organization",
            "is_vendor", "expected_booth_physical_id",
        ]
        return pd.DataFrame([asdict(r) for r in self.registrations], columns=columns)
