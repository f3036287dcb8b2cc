from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from ..config.loader import DEFAULT_LEAD_TIME, ConfigError, parse_lead_time

if TYPE_CHECKING:
    from ..backend.contracts import ConfigurationSource

"""Lead-time gate for receipt date/times.

The earliest allowed receipt is now + lead time; a candidate is accepted only
when it is strictly after that instant. The same gate instance drives both the
prefilled default of a fresh draft and the validation at confirmation time,
so the two can never disagree about the lead time.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "LeadTimeViolationError",
    "ReceiptFormatError",
    "LeadTimeGate",
    "parse_receipt",
]

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d/%m/%y")
TIME_FORMATS = ("%H:%M", "%H:%M:%S")
PREFILL_MARGIN = timedelta(minutes=30)


class LeadTimeViolationError(Exception):
    """Receipt date/time is not far enough in the future."""

    def __init__(self, required_hours: float, earliest: datetime) -> None:
        self.required_hours = required_hours
        self.earliest = earliest
        super().__init__(
            f"receipt time must be at least {required_hours:g} hours from now "
            f"(after {earliest:%Y-%m-%d %H:%M})"
        )


class ReceiptFormatError(ValueError):
    """Receipt date or time string could not be parsed."""


def _parse_with(value: str, formats: tuple[str, ...]) -> datetime | None:
    for fmt in formats:
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    return None


def parse_receipt(receipt_date: str, receipt_time: str) -> tuple[date, time]:
    """Parse the draft's receipt date (ISO or DD/MM/YY[YY]) and time (HH:MM[:SS])."""
    parsed_date = _parse_with(receipt_date or "", DATE_FORMATS)
    if parsed_date is None:
        raise ReceiptFormatError(f"unrecognized receipt date '{receipt_date}'")
    parsed_time = _parse_with(receipt_time or "", TIME_FORMATS)
    if parsed_time is None:
        raise ReceiptFormatError(f"unrecognized receipt time '{receipt_time}'")
    return parsed_date.date(), parsed_time.time()


class LeadTimeGate:
    def __init__(
        self,
        lead: timedelta = DEFAULT_LEAD_TIME,
        *,
        tz: str = "UTC",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.lead = lead
        self.tz = ZoneInfo(tz)
        self._clock = clock

    @classmethod
    def from_source(
        cls,
        source: ConfigurationSource | None,
        fallback: timedelta = DEFAULT_LEAD_TIME,
        *,
        tz: str = "UTC",
        clock: Callable[[], datetime] | None = None,
    ) -> LeadTimeGate:
        """Build the gate from the backend configuration value.

        Falls back to `fallback` (the local config value, 12h by default) when
        the source is missing, fails, or returns nothing usable.
        """
        lead = fallback
        if source is not None:
            try:
                raw = source.fetch_lead_time()
                if raw:
                    lead = parse_lead_time(raw)
            except ConfigError as e:
                logger.warning("ignoring malformed lead time from backend: %s", e)
            except Exception as e:
                logger.warning("lead time unavailable, using %s: %s", fallback, e)
        return cls(lead, tz=tz, clock=clock)

    @property
    def required_hours(self) -> float:
        return self.lead.total_seconds() / 3600

    def now(self) -> datetime:
        current = self._clock() if self._clock is not None else datetime.now(self.tz)
        if current.tzinfo is None:
            current = current.replace(tzinfo=self.tz)
        return current

    def earliest_allowed(self, now: datetime | None = None) -> datetime:
        return (now or self.now()) + self.lead

    def candidate(self, receipt_date: str, receipt_time: str) -> datetime:
        d, t = parse_receipt(receipt_date, receipt_time)
        return datetime.combine(d, t, tzinfo=self.tz)

    def is_allowed(self, candidate: datetime, now: datetime | None = None) -> bool:
        return candidate > self.earliest_allowed(now)

    def check(self, receipt_date: str, receipt_time: str, now: datetime | None = None) -> datetime:
        """Return the candidate datetime, or raise LeadTimeViolationError."""
        now = now or self.now()
        candidate = self.candidate(receipt_date, receipt_time)
        if not self.is_allowed(candidate, now):
            raise LeadTimeViolationError(self.required_hours, self.earliest_allowed(now))
        return candidate

    def default_receipt(self, now: datetime | None = None) -> tuple[str, str]:
        """Prefill value for a new draft: earliest allowed + 30 minutes."""
        prefill = self.earliest_allowed(now).astimezone(self.tz) + PREFILL_MARGIN
        return prefill.strftime("%Y-%m-%d"), prefill.strftime("%H:%M")

    def first_selectable_minute(self, now: datetime | None = None) -> datetime:
        """First whole minute strictly after the earliest allowed instant."""
        earliest = self.earliest_allowed(now).astimezone(self.tz)
        return earliest.replace(second=0, microsecond=0) + timedelta(minutes=1)

    def is_date_selectable(self, day: date, now: datetime | None = None) -> bool:
        """Picker rule: days before the first selectable minute are disabled."""
        return day >= self.first_selectable_minute(now).date()

    def earliest_time_on(self, day: date, now: datetime | None = None) -> time | None:
        """Earliest selectable time of day on `day` (None when the whole day is open)."""
        first = self.first_selectable_minute(now)
        if day < first.date():
            raise ValueError(f"{day} is before the earliest allowed day {first.date()}")
        if day == first.date():
            return first.time().replace(tzinfo=None)
        return None
