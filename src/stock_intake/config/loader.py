from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader for the upload pipeline.

Responsibilities:
- Load YAML config (config/intake.yml by default)
- Validate it against the bundled JSON schema
- Apply defaults (timezone=UTC, lead time 12h, ...)
- Apply STOCK_INTAKE_* environment overrides (populated from .env by the CLI)
"""

SCHEMA_PATH = Path(__file__).with_name("schema.json")

DEFAULT_CONFIG_PATH = Path("config/intake.yml")
DEFAULT_LEAD_TIME = timedelta(hours=12)
DEFAULT_PAGE_SIZE = 50
DEFAULT_REASON_MAX_LENGTH = 150

ENV_LEAD_TIME = "STOCK_INTAKE_LEAD_TIME"
ENV_TIMEZONE = "STOCK_INTAKE_TIMEZONE"

_LEAD_TIME_RE = re.compile(r"^(\d{1,3}):([0-5]\d)(?::([0-5]\d))?$")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class IntakeConfig:
    timezone: str
    lead_time: timedelta  # local fallback when the backend has no value
    detail_page_size: int
    error_log_dir: Path
    reason_max_length: int


def parse_lead_time(raw: str | None) -> timedelta:
    """Parse a lead time given as HH:MM:SS (or HH:MM); blank means the 12h default."""
    if raw is None or not str(raw).strip():
        return DEFAULT_LEAD_TIME
    m = _LEAD_TIME_RE.match(str(raw).strip())
    if not m:
        raise ConfigError(f"invalid lead time '{raw}' (expected HH:MM:SS)")
    hours, minutes, seconds = (int(g) if g else 0 for g in m.groups())
    return timedelta(hours=hours, minutes=minutes, seconds=seconds)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: if the schema file is missing or not valid JSON, or the
            config data fails validation (unknown keys, wrong types, ...).
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


def _check_timezone(tz: str) -> str:
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {tz}") from e
    return tz


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> IntakeConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    # environment wins over the file
    tz = os.getenv(ENV_TIMEZONE) or data.get("timezone", "UTC")
    lead_raw = os.getenv(ENV_LEAD_TIME) or data.get("lead_time")
    return IntakeConfig(
        timezone=_check_timezone(tz),
        lead_time=parse_lead_time(lead_raw),
        detail_page_size=data.get("detail_page_size", DEFAULT_PAGE_SIZE),
        error_log_dir=Path(data.get("error_log_dir", "./logs")),
        reason_max_length=data.get("reason_max_length", DEFAULT_REASON_MAX_LENGTH),
    )


def default_config() -> IntakeConfig:
    """Config used when no file is present (library callers, tests)."""
    return IntakeConfig(
        timezone="UTC",
        lead_time=DEFAULT_LEAD_TIME,
        detail_page_size=DEFAULT_PAGE_SIZE,
        error_log_dir=Path("./logs"),
        reason_max_length=DEFAULT_REASON_MAX_LENGTH,
    )
