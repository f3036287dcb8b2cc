from __future__ import annotations

from dataclasses import dataclass

"""Validated line items and their per-provider grouping."""

__all__ = [
    "LineItem",
    "ProviderGroup",
]


@dataclass(frozen=True)
class LineItem:
    """Canonical, catalog-checked unit of an uploaded document.

    Display fields are copied from the catalog at validation time; values typed
    into the sheet for them are never used.
    """
    row_number: int
    item_id: int
    quantity: int
    provider_id: int | None
    item_name: str
    measurement_unit: str
    total_measurement_value: float
    provider_name: str | None = None


@dataclass(frozen=True)
class ProviderGroup:
    """All line items of one upload that share a provider (request flow)."""
    provider_id: int
    provider_name: str | None
    items: tuple[LineItem, ...]

    @property
    def total_quantity(self) -> int:
        return sum(i.quantity for i in self.items)
