"""Domain models for the event schedule importer.

This package contains the model classes shared by the parser, the import
orchestrator and the persistence gateways.
"""

from .config_models import DatabaseConfig, ImportConfig, ParserConfig
from .error_record import ErrorRecord
from .import_summary import EntityResult, EntityTally, ImportSummary
from .records import (
    AttendeeRecord,
    BatchResult,
    BoothRecord,
    CapacityLink,
    EventInfo,
    RegistrationRecord,
    SessionRecord,
)
from .resolution import Resolved, ResolvedWithReview
from .schedule import ParsedBooth, ParsedSchedule, ParsedSession, RegistrationCandidate
from .sheet import BoothColumn, SessionBlock, Sheet

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "ImportConfig",
    "ParserConfig",
    # Parsing models
    "Sheet",
    "BoothColumn",
    "SessionBlock",
    "Resolved",
    "ResolvedWithReview",
    "ParsedSchedule",
    "ParsedSession",
    "ParsedBooth",
    "RegistrationCandidate",
    "ErrorRecord",
    # Persistence models
    "BoothRecord",
    "SessionRecord",
    "AttendeeRecord",
    "CapacityLink",
    "RegistrationRecord",
    "EventInfo",
    "BatchResult",
    # Summary
    "EntityTally",
    "EntityResult",
    "ImportSummary",
]
