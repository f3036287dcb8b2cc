from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..excel.fields import RowError
from ..models.catalog import Catalog
from ..models.draft import Flow
from ..models.line_item import LineItem
from ..models.row_data import ExtractedRow
from .progress import RowProgress

"""Catalog validation of extracted rows.

Each row is checked on its own (no cross-row state), in this order:

1. the item id resolves to a catalog item          -> UnknownItemError
2. the quantity is a positive whole number         -> InvalidQuantityError
3. request flow only: the provider id resolves to a
   catalog provider                                -> UnknownProviderError
   and is one of the item's declared providers     -> ProviderMismatchError

A LineItem is only built for a row that passed every check. Display fields
(name, unit, measurement value, provider name) come from the catalog.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "UnknownItemError",
    "InvalidQuantityError",
    "ProviderError",
    "UnknownProviderError",
    "ProviderMismatchError",
    "NoValidRowsError",
    "ValidationResult",
    "validate_row",
    "validate_rows",
    "require_valid",
]

UNKNOWN_UNIT = "Unknown"


class UnknownItemError(RowError):
    error_type = "UNKNOWN_ITEM"


class InvalidQuantityError(RowError):
    error_type = "INVALID_QUANTITY"


class ProviderError(RowError):
    """Provider reference failed; see the two subclasses for the reason."""

    error_type = "PROVIDER_ERROR"


class UnknownProviderError(ProviderError):
    error_type = "UNKNOWN_PROVIDER"


class ProviderMismatchError(ProviderError):
    error_type = "PROVIDER_MISMATCH"


class NoValidRowsError(Exception):
    """Raised when an upload has no row left after validation."""


@dataclass(frozen=True)
class ValidationResult:
    line_items: list[LineItem] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)

    @property
    def rejected(self) -> bool:
        return not self.line_items


def _positive_whole(quantity: object) -> int | None:
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)):
        return None
    if isinstance(quantity, float) and not (math.isfinite(quantity) and quantity.is_integer()):
        return None
    value = int(quantity)
    return value if value > 0 else None


def validate_row(row: ExtractedRow, catalog: Catalog, flow: Flow) -> LineItem:
    """Validate one row against the catalog and build its LineItem."""
    item = catalog.item(row.item_id)
    if item is None:
        raise UnknownItemError(row.row_number, f"item {row.item_id} not found in catalog")

    quantity = _positive_whole(row.quantity)
    if quantity is None:
        raise InvalidQuantityError(
            row.row_number, f"quantity '{row.quantity}' for item {row.item_id} must be a positive whole number"
        )

    provider_name = None
    if flow is Flow.REQUEST:
        provider = catalog.provider(row.provider_id) if row.provider_id is not None else None
        if provider is None:
            raise UnknownProviderError(row.row_number, f"provider {row.provider_id} not found")
        if provider.id not in item.provider_ids:
            raise ProviderMismatchError(
                row.row_number, f"provider {provider.id} does not supply item {item.id}"
            )
        provider_name = provider.name

    return LineItem(
        row_number=row.row_number,
        item_id=item.id,
        quantity=quantity,
        provider_id=row.provider_id if flow is Flow.REQUEST else None,
        item_name=item.name,
        measurement_unit=item.measurement_unit or UNKNOWN_UNIT,
        total_measurement_value=item.total_measurement_value or 0,
        provider_name=provider_name,
    )


def validate_rows(rows: Sequence[ExtractedRow], catalog: Catalog, flow: Flow) -> ValidationResult:
    """Validate every row; invalid rows are collected, never fatal on their own."""
    if catalog.is_empty:
        logger.warning("catalog is empty; every row will be rejected")
    line_items: list[LineItem] = []
    errors: list[RowError] = []
    with RowProgress(len(rows), description="Validating rows") as progress:
        for row in rows:
            try:
                line_items.append(validate_row(row, catalog, flow))
            except RowError as e:
                errors.append(e)
            progress.advance()
    return ValidationResult(line_items=line_items, errors=errors)


def require_valid(result: ValidationResult) -> ValidationResult:
    """Reject the upload as a unit when no row survived validation."""
    if result.rejected:
        raise NoValidRowsError(
            f"no valid rows ({len(result.errors)} rejected); fix the file and upload it again"
        )
    return result
