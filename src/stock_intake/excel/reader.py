from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from io import BytesIO
from typing import Any

import pandas as pd

from ..models.row_data import RawRow

"""Tabular decoder for uploaded workbooks.

The first sheet's first row is the header; every following non-empty row is a
data row. The decoder is a pure function over the uploaded bytes: it never
touches the filesystem and never looks at the catalog.
"""

__all__ = [
    "DecodeError",
    "SheetHeaderError",
    "EmptySheetError",
    "MissingColumnsError",
    "SheetData",
    "read_first_sheet",
    "normalize_sheet",
    "decode_workbook",
]

# Strings users type into note cells that pandas would otherwise turn into NaN
DEFAULT_KEEP_NA_STRINGS = ("NA", "N/A", "None", "null", "NULL")


class DecodeError(Exception):
    """Raised when the upload is not a readable workbook with data rows."""


class SheetHeaderError(DecodeError):
    """Raised when the first row (header) is missing or blank."""


class EmptySheetError(DecodeError):
    """Raised when the sheet has a header but zero data rows."""


class MissingColumnsError(DecodeError):
    """Raised when none of the accepted labels of a required column is in the header."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[RawRow]


def _native(value: Any) -> Any:
    # numpy scalars -> python scalars so isinstance checks downstream behave
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        try:
            return value.item()
        except (ValueError, AttributeError):
            return value
    return value


def read_first_sheet(
    data: bytes, keep_na_strings: Sequence[str] | None = DEFAULT_KEEP_NA_STRINGS
) -> tuple[str, pd.DataFrame]:
    """Read the first sheet of a workbook held in memory, without a header.

    Parameters
    ----------
    data: raw bytes of the uploaded file
    keep_na_strings: strings excluded from pandas' default NaN conversion
    """
    import pandas._libs.parsers as parsers

    if keep_na_strings:
        na_values = list(parsers.STR_NA_VALUES - set(keep_na_strings))
        keep_default_na = False
    else:
        na_values = None
        keep_default_na = True

    if not data:
        raise DecodeError("uploaded file is empty")
    try:
        xls = pd.ExcelFile(BytesIO(data), engine="openpyxl")
        if not xls.sheet_names:
            raise DecodeError("workbook has no sheets")
        name = xls.sheet_names[0]
        df = xls.parse(name, header=None, keep_default_na=keep_default_na, na_values=na_values)
    except DecodeError:
        raise
    except Exception as e:
        raise DecodeError(f"cannot read workbook: {e}") from e
    return str(name), df


def normalize_sheet(
    df: pd.DataFrame,
    sheet_name: str,
    required_columns: Iterable[Sequence[str]] | None = None,
) -> SheetData:
    """Turn a raw header-less DataFrame into RawRows using the first row as header.

    Steps:
    1. Validate the first row exists and has at least one label
    2. Data rows start at index 1; rows where every cell is empty are skipped
    3. Empty cells become None, strings are stripped (blank -> None)
    4. Each entry of required_columns is a group of accepted labels; at least
       one label of every group must be present in the header
    """
    if df.shape[0] < 1:
        raise SheetHeaderError(f"sheet '{sheet_name}' has no header row")

    labels: list[str | None] = []
    for c in df.iloc[0].tolist():
        if pd.isna(c) or str(c).strip() == "":
            labels.append(None)
        else:
            labels.append(str(c).strip())
    columns = [c for c in labels if c is not None]
    if not columns:
        raise SheetHeaderError(f"sheet '{sheet_name}' has a blank header row")

    if required_columns is not None:
        present = set(columns)
        missing = [group[0] for group in required_columns if not present.intersection(group)]
        if missing:
            raise MissingColumnsError(f"sheet '{sheet_name}' missing columns: {missing}")

    rows: list[RawRow] = []
    for _, raw in df.iloc[1:].iterrows():
        if raw.isna().all():
            continue
        values: dict[str, Any] = {}
        for label, val in zip(labels, raw.tolist(), strict=False):
            if label is None or label in values:
                continue  # unlabeled column / duplicate label (first one wins)
            if pd.isna(val):
                values[label] = None
                continue
            if isinstance(val, str):
                stripped = val.strip()
                values[label] = stripped if stripped else None
                continue
            values[label] = _native(val)
        if all(v is None for v in values.values()):
            continue
        rows.append(RawRow(row_number=len(rows) + 1, values=values))

    return SheetData(sheet_name=sheet_name, columns=columns, rows=rows)


def decode_workbook(
    data: bytes,
    *,
    file_name: str = "<upload>",
    required_columns: Iterable[Sequence[str]] | None = None,
) -> SheetData:
    """Decode uploaded bytes into the first sheet's RawRows.

    Raises DecodeError (or a subclass) when the bytes are not a workbook, the
    header is missing, a required column is absent, or there are no data rows.
    """
    sheet_name, df = read_first_sheet(data)
    sheet = normalize_sheet(df, sheet_name, required_columns=required_columns)
    if not sheet.rows:
        raise EmptySheetError(f"'{file_name}' has no data rows")
    return sheet
