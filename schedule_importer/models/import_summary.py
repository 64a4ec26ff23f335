from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

"""Import summary models.

EntityTally is the mutable per-entity counter block the orchestrator updates while
phases run. ImportSummary is the frozen snapshot returned to the caller once the
run reaches the Reported state.
"""

__all__ = [
    "ENTITY_CLASSES",
    "EntityTally",
    "EntityResult",
    "ImportSummary",
]

ENTITY_CLASSES = ("booths", "sessions", "capacities", "attendees", "registrations", "event")


@dataclass
class EntityTally:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def freeze(self) -> EntityResult:
        return EntityResult(
            success=self.success,
            failed=self.failed,
            skipped=self.skipped,
            errors=tuple(self.errors),
        )


@dataclass(frozen=True)
class EntityResult:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: tuple[str, ...] = ()

    @property
    def has_problems(self) -> bool:
        return self.failed > 0 or self.skipped > 0


@dataclass(frozen=True)
class ImportSummary:
    """Aggregated per-entity results of one import run."""
    booths: EntityResult
    sessions: EntityResult
    capacities: EntityResult
    attendees: EntityResult
    registrations: EntityResult
    event: EntityResult
    start_time: datetime
    end_time: datetime
    aborted: bool = False  # a fatal phase stopped the run early
    phases_completed: tuple[str, ...] = ()

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    def entities(self) -> dict[str, EntityResult]:
        return {name: getattr(self, name) for name in ENTITY_CLASSES}

    @property
    def all_errors(self) -> list[str]:
        out: list[str] = []
        for result in self.entities().values():
            out.extend(result.errors)
        return out

    @property
    def has_problems(self) -> bool:
        return self.aborted or any(r.has_problems for r in self.entities().values())
