from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_COMPANY_MARKERS,
    DEFAULT_SESSION_MINUTES,
    DatabaseConfig,
    ImportConfig,
    ParserConfig,
)
from ..models.records import EventInfo

"""Config loader.

Responsibilities:
- Load YAML config (default location config/import.yml)
- Validate against the JSON schema shipped next to this module
- Apply defaults (timezone=UTC, 30 minute sessions, ./logs)
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or if the
            config data fails validation (missing required keys, wrong types,
            unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _parse_date(value: Any, key: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ConfigError(f"event.{key}: invalid date {value!r}") from e


def _normalize_yaml_dates(event_raw: Any) -> Any:
    # YAML の素の 2024-05-01 は date 型になるため、スキーマ検証前に文字列へ戻す
    if not isinstance(event_raw, dict):
        return event_raw
    return {k: (v.isoformat() if isinstance(v, date) else v) for k, v in event_raw.items()}


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    if "event" in data:
        data["event"] = _normalize_yaml_dates(data["event"])

    _validate_config_schema(data)

    event_raw = data["event"]
    event = EventInfo(
        id=event_raw["id"],
        name=event_raw.get("name"),
        start_date=_parse_date(event_raw.get("start_date"), "start_date"),
        end_date=_parse_date(event_raw.get("end_date"), "end_date"),
    )

    parser_raw = data.get("parser", {})
    parser = ParserConfig(
        company_markers=tuple(parser_raw.get("company_markers", DEFAULT_COMPANY_MARKERS)),
        session_minutes=parser_raw.get("session_minutes", DEFAULT_SESSION_MINUTES),
    )

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )

    timezone = data.get("timezone", "UTC")
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {timezone}") from e

    return ImportConfig(
        source_workbook=data["source_workbook"],
        event=event,
        timezone=timezone,
        parser=parser,
        cached_views=tuple(data.get("cached_views", [])),
        logs_directory=data.get("logs_directory", "./logs"),
        database=db,
    )
