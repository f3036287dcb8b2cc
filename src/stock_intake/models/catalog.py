from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

"""Catalog snapshot models.

The catalog (items + providers) and the existing request details are owned by
the data-fetch layer and handed to the validator / reconciler as read-only
snapshots. Nothing in the pipeline mutates them.
"""

__all__ = [
    "CatalogItem",
    "Provider",
    "Catalog",
    "ExistingDetail",
]


@dataclass(frozen=True)
class CatalogItem:
    id: int
    name: str
    measurement_unit: str | None = None
    total_measurement_value: float | None = None
    provider_ids: frozenset[int] = field(default_factory=frozenset)  # providers allowed to supply this item


@dataclass(frozen=True)
class Provider:
    id: int
    name: str


@dataclass(frozen=True)
class Catalog:
    """Read-only item and provider snapshot used to validate uploaded rows."""
    items: Mapping[int, CatalogItem]
    providers: Mapping[int, Provider]

    @classmethod
    def from_records(cls, items: Iterable[CatalogItem], providers: Iterable[Provider]) -> Catalog:
        return cls(
            items={i.id: i for i in items},
            providers={p.id: p for p in providers},
        )

    @property
    def is_empty(self) -> bool:
        return not self.items

    def item(self, item_id: int) -> CatalogItem | None:
        return self.items.get(item_id)

    def provider(self, provider_id: int) -> Provider | None:
        return self.providers.get(provider_id)


@dataclass(frozen=True)
class ExistingDetail:
    """A line already present on an import request (order flow only).

    expect_quantity is the total the request needs; ordered_quantity is what
    earlier import orders have already committed.
    """
    detail_id: int
    item_id: int
    item_name: str
    expect_quantity: int
    ordered_quantity: int = 0
