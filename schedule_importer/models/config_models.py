from __future__ import annotations

from dataclasses import dataclass, field

from .records import EventInfo

"""Config dataclasses for the schedule importer.

Built by ``schedule_importer.config.loader.load_config`` after YAML parsing and
JSON schema validation. Defaults here mirror the defaults documented in the schema.
"""

DEFAULT_COMPANY_MARKERS = ("›", "â€º")  # U+203A と、その UTF-8 を cp1252 で読んだ化け文字
DEFAULT_SESSION_MINUTES = 30


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ParserConfig:
    """Workbook layout knobs."""
    company_markers: tuple[str, ...] = DEFAULT_COMPANY_MARKERS
    session_minutes: int = DEFAULT_SESSION_MINUTES


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for one import run."""
    source_workbook: str
    event: EventInfo
    timezone: str = "UTC"
    parser: ParserConfig = field(default_factory=ParserConfig)
    cached_views: tuple[str, ...] = ()
    logs_directory: str = "./logs"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
