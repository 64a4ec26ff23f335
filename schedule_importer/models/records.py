from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Generic, TypeVar

"""Persisted record models returned by the persistence gateway.

Phase: import (batch apply)
Every gateway operation returns a BatchResult: the records it created (or found)
and a list of per-item error messages. An empty ``created`` list together with a
non-empty ``errors`` list means the whole batch failed.
"""

__all__ = [
    "BoothRecord",
    "SessionRecord",
    "AttendeeRecord",
    "CapacityLink",
    "RegistrationRecord",
    "EventInfo",
    "BatchResult",
]

T = TypeVar("T")


@dataclass(frozen=True)
class BoothRecord:
    id: Any
    physical_id: str
    company_name: str | None


@dataclass(frozen=True)
class SessionRecord:
    id: Any
    name: str
    start_time: datetime
    end_time: datetime


@dataclass(frozen=True)
class AttendeeRecord:
    id: Any
    first_name: str
    last_name: str
    organization: str
    is_vendor: bool = False


@dataclass(frozen=True)
class CapacityLink:
    session_id: Any
    booth_id: Any
    capacity: int


@dataclass(frozen=True)
class RegistrationRecord:
    event_id: Any
    session_id: Any
    attendee_id: Any
    expected_booth_id: Any | None
    status: str = "Registered"


@dataclass(frozen=True)
class EventInfo:
    """The target event and its currently stored date range."""
    id: Any
    name: str | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True)
class BatchResult(Generic[T]):
    created: list[T] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def total_failure(self) -> bool:
        """True when the call created nothing and reported at least one error."""
        return not self.created and bool(self.errors)
