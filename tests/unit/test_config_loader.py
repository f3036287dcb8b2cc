from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from stock_intake.config.loader import (
    ENV_LEAD_TIME,
    ENV_TIMEZONE,
    ConfigError,
    default_config,
    load_config,
    parse_lead_time,
)


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.timezone == "UTC"
    assert cfg.lead_time == timedelta(hours=12)
    assert cfg.detail_page_size == 2
    assert cfg.error_log_dir == Path("./logs")
    assert cfg.reason_max_length == 150


def test_defaults_for_missing_keys(temp_workdir: Path):
    p = temp_workdir / "config" / "intake.yml"
    p.write_text("{}\n", encoding="utf-8")
    cfg = load_config(p)
    assert cfg == default_config()


def test_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(temp_workdir / "config" / "nope.yml")


def test_invalid_yaml(temp_workdir: Path):
    p = temp_workdir / "config" / "intake.yml"
    p.write_text("timezone: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(p)


def test_root_must_be_mapping(temp_workdir: Path):
    p = temp_workdir / "config" / "intake.yml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(p)


@pytest.mark.parametrize("content", [
    "unknown_key: 1\n",
    "detail_page_size: 0\n",
    "lead_time: twelve\n",
    "reason_max_length: long\n",
])
def test_schema_violations(temp_workdir: Path, content: str):
    p = temp_workdir / "config" / "intake.yml"
    p.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError, match="validation failed"):
        load_config(p)


def test_unknown_timezone(temp_workdir: Path):
    p = temp_workdir / "config" / "intake.yml"
    p.write_text("timezone: Mars/Olympus\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="timezone"):
        load_config(p)


def test_environment_overrides_file(write_config: Path, monkeypatch):
    monkeypatch.setenv(ENV_LEAD_TIME, "06:30")
    monkeypatch.setenv(ENV_TIMEZONE, "Asia/Ho_Chi_Minh")
    cfg = load_config(write_config)
    assert cfg.lead_time == timedelta(hours=6, minutes=30)
    assert cfg.timezone == "Asia/Ho_Chi_Minh"


@pytest.mark.parametrize("raw,expected", [
    ("12:00:00", timedelta(hours=12)),
    ("00:45", timedelta(minutes=45)),
    ("48:00:30", timedelta(hours=48, seconds=30)),
    ("", timedelta(hours=12)),
    (None, timedelta(hours=12)),
])
def test_parse_lead_time(raw, expected):
    assert parse_lead_time(raw) == expected


@pytest.mark.parametrize("raw", ["12h", "12:60", "-1:00"])
def test_parse_lead_time_rejects(raw):
    with pytest.raises(ConfigError):
        parse_lead_time(raw)
