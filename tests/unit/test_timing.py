from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from unittest.mock import MagicMock

import pytest

from stock_intake.services.timing import (
    LeadTimeGate,
    LeadTimeViolationError,
    ReceiptFormatError,
    parse_receipt,
)

NOW = datetime(2030, 1, 1, 8, 0, tzinfo=UTC)


def test_exact_boundary_is_rejected(gate):
    # now + 12h exactly
    with pytest.raises(LeadTimeViolationError) as ei:
        gate.check("2030-01-01", "20:00")
    assert ei.value.required_hours == 12
    assert ei.value.earliest == NOW + timedelta(hours=12)
    assert "12 hours" in str(ei.value)


def test_one_minute_after_boundary_is_accepted(gate):
    assert gate.check("2030-01-01", "20:01") == datetime(2030, 1, 1, 20, 1, tzinfo=UTC)


def test_alternative_formats(gate):
    assert gate.check("02/01/2030", "09:00:00") == datetime(2030, 1, 2, 9, 0, tzinfo=UTC)


def test_parse_receipt_rejects_garbage():
    with pytest.raises(ReceiptFormatError, match="date"):
        parse_receipt("soon", "10:00")
    with pytest.raises(ReceiptFormatError, match="time"):
        parse_receipt("2030-01-01", "noon")


def test_default_receipt_is_after_the_gate(gate):
    receipt_date, receipt_time = gate.default_receipt()
    assert (receipt_date, receipt_time) == ("2030-01-01", "20:30")
    gate.check(receipt_date, receipt_time)


def test_timezone_is_applied_to_candidate():
    gate = LeadTimeGate(timedelta(hours=1), tz="Asia/Ho_Chi_Minh", clock=lambda: NOW)
    # 08:00 UTC == 15:00 in Ho Chi Minh City (UTC+7)
    assert not gate.is_allowed(gate.candidate("2030-01-01", "16:00"))
    assert gate.is_allowed(gate.candidate("2030-01-01", "16:01"))


def test_naive_clock_is_localized():
    gate = LeadTimeGate(clock=lambda: datetime(2030, 1, 1, 8, 0))
    assert gate.now() == NOW


def test_date_picker_rules(gate):
    assert not gate.is_date_selectable(date(2029, 12, 31))
    assert gate.is_date_selectable(date(2030, 1, 1))
    assert gate.earliest_time_on(date(2030, 1, 1)) == time(20, 1)
    assert gate.earliest_time_on(date(2030, 1, 2)) is None
    with pytest.raises(ValueError):
        gate.earliest_time_on(date(2029, 12, 31))


@pytest.mark.parametrize("now", [
    NOW,
    NOW + timedelta(seconds=30),
    NOW + timedelta(seconds=59, microseconds=1),
])
def test_earliest_picker_time_passes_the_gate(now):
    gate = LeadTimeGate(tz="UTC", clock=lambda: now)
    day = date(2030, 1, 1)
    earliest = gate.earliest_time_on(day)
    assert earliest == time(20, 1)
    gate.check(day.isoformat(), earliest.strftime("%H:%M"))
    with pytest.raises(LeadTimeViolationError):
        gate.check(day.isoformat(), "20:00")


def test_picker_rolls_over_to_next_day():
    gate = LeadTimeGate(tz="UTC", clock=lambda: datetime(2030, 1, 1, 11, 59, 30, tzinfo=UTC))
    assert not gate.is_date_selectable(date(2030, 1, 1))
    assert gate.earliest_time_on(date(2030, 1, 2)) == time(0, 0)
    gate.check("2030-01-02", "00:00")


def test_from_source_uses_backend_value():
    source = MagicMock()
    source.fetch_lead_time.return_value = "24:00:00"
    gate = LeadTimeGate.from_source(source, clock=lambda: NOW)
    assert gate.lead == timedelta(hours=24)
    assert gate.required_hours == 24


@pytest.mark.parametrize("side_effect,value", [
    (None, None),
    (None, "garbage"),
    (RuntimeError("backend down"), None),
])
def test_from_source_falls_back(side_effect, value):
    source = MagicMock()
    source.fetch_lead_time.side_effect = side_effect
    source.fetch_lead_time.return_value = value
    gate = LeadTimeGate.from_source(source, timedelta(hours=6))
    assert gate.lead == timedelta(hours=6)


def test_from_source_without_source():
    assert LeadTimeGate.from_source(None).lead == timedelta(hours=12)
