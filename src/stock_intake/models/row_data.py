from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""Row models for the upload pipeline.

RawRow is what the tabular decoder hands out: a header label -> cell mapping for
one data row. ExtractedRow is the same row after header aliases have been
resolved and dates/times normalized, but before any catalog lookup.
"""

__all__ = [
    "RawRow",
    "ExtractedRow",
]


@dataclass(frozen=True)
class RawRow:
    """One data row of the first sheet, keyed by header label.

    row_number is the 1-based position among data rows (the header row is not
    counted), which is the number shown to users in row error messages.
    """
    row_number: int
    values: dict[str, Any]  # header label -> cell value (None for empty cells)


@dataclass(frozen=True)
class ExtractedRow:
    """Semantic fields of one row, resolved from the accepted header aliases."""
    row_number: int
    item_id: int
    quantity: Any  # numeric check happens in the catalog validator
    provider_id: int | None = None
    date: str | None = None  # YYYY-MM-DD or the display string from the sheet
    time: str | None = None  # HH:MM or the display string from the sheet
    note: str | None = None
