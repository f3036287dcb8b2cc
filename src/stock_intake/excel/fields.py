from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

from openpyxl.utils.datetime import from_excel

from ..models.draft import Flow
from ..models.row_data import ExtractedRow, RawRow

"""Field extraction: header aliases and spreadsheet cell typing.

Users upload sheets with either the canonical English headers (the ones in
the downloadable template) or localized Vietnamese ones. FIELD_ALIASES is the
static priority list; the first label present in a row wins.

Date and time cells arrive either as display strings or as numeric serials
(days since the 1900-system epoch; time as a fraction of a day). classify_cell
turns a cell into an explicit SerialCell / TextCell and the serial_to_* helpers
decide the conversion per field.
"""

__all__ = [
    "FIELD_ALIASES",
    "FLOW_FIELDS",
    "RowError",
    "ExtractionError",
    "SerialCell",
    "TextCell",
    "classify_cell",
    "lookup",
    "serial_to_date",
    "serial_to_time",
    "resolve_date",
    "resolve_time",
    "required_column_groups",
    "extract_row",
    "extract_rows",
    "header_fields",
]

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "item_id": ("itemId", "Mã hàng"),
    "quantity": ("quantity", "Số lượng"),
    "provider_id": ("providerId", "Nhà cung cấp"),
    "date": ("dateReceived", "Ngày nhận", "ngày nhận", "Ngay nhan"),
    "time": ("timeReceived", "Giờ nhận", "giờ nhận", "Gio nhan"),
    "note": ("note", "Ghi chú", "ghi chú", "Ghi chu"),
}

# Fields each flow reads, in template column order; required ones first
FLOW_FIELDS: dict[Flow, tuple[str, ...]] = {
    Flow.REQUEST: ("item_id", "quantity", "provider_id"),
    Flow.ORDER: ("item_id", "quantity", "date", "time", "note"),
}

REQUIRED_FIELDS: dict[Flow, tuple[str, ...]] = {
    Flow.REQUEST: ("item_id", "quantity", "provider_id"),
    Flow.ORDER: ("item_id", "quantity"),
}

MINUTES_PER_DAY = 24 * 60


class RowError(Exception):
    """Base class for problems that reject a single row but not the batch."""

    error_type = "ROW_ERROR"

    def __init__(self, row_number: int, message: str) -> None:
        super().__init__(message)
        self.row_number = row_number
        self.message = message

    def __str__(self) -> str:
        return f"row {self.row_number}: {self.message}"


class ExtractionError(RowError):
    """A required field is missing or not usable in a row."""

    error_type = "MISSING_FIELD"


@dataclass(frozen=True)
class SerialCell:
    """Numeric cell, interpreted as a spreadsheet serial for date/time fields."""
    value: float


@dataclass(frozen=True)
class TextCell:
    """Display string, used as typed."""
    value: str


def classify_cell(value: Any) -> SerialCell | TextCell | None:
    """Decide whether a cell is a numeric serial or a display string."""
    if value is None:
        return None
    if isinstance(value, bool):
        return TextCell(str(value))
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return None
        return SerialCell(float(value))
    # openpyxl already converted date-formatted cells
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return TextCell(value.date().isoformat())
        return TextCell(value.strftime("%Y-%m-%d %H:%M"))
    if isinstance(value, date):
        return TextCell(value.isoformat())
    if isinstance(value, time):
        return TextCell(value.strftime("%H:%M"))
    text = str(value).strip()
    return TextCell(text) if text else None


def lookup(values: Mapping[str, Any], field: str) -> Any:
    """Return the value under the first accepted label that holds a value.

    An empty cell under a preferred label falls through to the next alias.
    """
    for label in FIELD_ALIASES[field]:
        if values.get(label) is not None:
            return values[label]
    return None


def serial_to_date(serial: float) -> str:
    """Convert a day serial (1900 date system) to YYYY-MM-DD.

    from_excel uses the 1899-12-30 epoch and shifts serials below 60 by one day
    to account for the fictitious 1900-02-29. Time fractions are dropped.
    """
    converted = from_excel(math.floor(serial))
    if isinstance(converted, datetime):
        return converted.date().isoformat()
    # serial 0 comes back as a bare time
    return "1899-12-30"


def serial_to_time(serial: float) -> str:
    """Convert a day fraction to HH:MM, rounded to the nearest minute."""
    fraction = serial - math.floor(serial)
    total_minutes = round(fraction * MINUTES_PER_DAY) % MINUTES_PER_DAY
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def resolve_date(value: Any) -> str | None:
    cell = classify_cell(value)
    if cell is None:
        return None
    if isinstance(cell, SerialCell):
        return serial_to_date(cell.value)
    return cell.value


def resolve_time(value: Any) -> str | None:
    cell = classify_cell(value)
    if cell is None:
        return None
    if isinstance(cell, SerialCell):
        return serial_to_time(cell.value)
    return cell.value


def _to_int(value: Any) -> int | None:
    """Integer id from an int, an integral float or a digit string; None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return None
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            return None
        if math.isfinite(number) and number.is_integer():
            return int(number)
    return None


def _to_number(value: Any) -> Any:
    # numeric strings become numbers; anything else is left for the validator to reject
    if isinstance(value, str):
        try:
            return float(value.strip().replace(",", ""))
        except ValueError:
            return value
    return value


def required_column_groups(flow: Flow) -> list[tuple[str, ...]]:
    """Accepted label groups that must appear in the header for a flow."""
    return [FIELD_ALIASES[f] for f in REQUIRED_FIELDS[flow]]


def extract_row(raw: RawRow, flow: Flow) -> ExtractedRow:
    """Resolve the semantic fields of one row.

    Raises ExtractionError naming every required field that is missing.
    """
    values = raw.values
    missing = [
        FIELD_ALIASES[f][0]
        for f in REQUIRED_FIELDS[flow]
        if lookup(values, f) is None
    ]
    if missing:
        raise ExtractionError(raw.row_number, f"missing required value(s): {', '.join(missing)}")

    item_raw = lookup(values, "item_id")
    item_id = _to_int(item_raw)
    if item_id is None:
        raise ExtractionError(raw.row_number, f"itemId '{item_raw}' is not a whole number")

    provider_id = None
    provider_raw = lookup(values, "provider_id")
    if provider_raw is not None:
        provider_id = _to_int(provider_raw)
        if provider_id is None:
            raise ExtractionError(raw.row_number, f"providerId '{provider_raw}' is not a whole number")

    note = lookup(values, "note")
    return ExtractedRow(
        row_number=raw.row_number,
        item_id=item_id,
        quantity=_to_number(lookup(values, "quantity")),
        provider_id=provider_id if flow is Flow.REQUEST else None,
        date=resolve_date(lookup(values, "date")),
        time=resolve_time(lookup(values, "time")),
        note=str(note) if note is not None else None,
    )


def extract_rows(rows: Iterable[RawRow], flow: Flow) -> tuple[list[ExtractedRow], list[RowError]]:
    """Extract every row; a bad row is reported and the batch continues."""
    extracted: list[ExtractedRow] = []
    errors: list[RowError] = []
    for raw in rows:
        try:
            extracted.append(extract_row(raw, flow))
        except RowError as e:
            errors.append(e)
    return extracted, errors


def header_fields(rows: Iterable[RawRow]) -> dict[str, str]:
    """Receipt date / time / note carried by the first data row (order flow prefill)."""
    first = next(iter(rows), None)
    if first is None:
        return {}
    found: dict[str, str] = {}
    receipt_date = resolve_date(lookup(first.values, "date"))
    receipt_time = resolve_time(lookup(first.values, "time"))
    note = lookup(first.values, "note")
    if receipt_date:
        found["receipt_date"] = receipt_date
    if receipt_time:
        found["receipt_time"] = receipt_time
    if note is not None:
        found["note"] = str(note)
    return found
