from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence

from ..models.catalog import ExistingDetail
from ..models.line_item import LineItem, ProviderGroup
from ..models.reconciled import MergeResult, ReconciledRow

"""Reconciliation of validated line items.

group_by_provider (request flow): one group per distinct provider; the backend
creates one child document per group.

merge_with_existing (order flow): left join of the request's existing details
with the uploaded quantities on item id. Uploaded items outside the request
are counted and dropped.

Both are pure functions of their inputs.
"""

__all__ = [
    "group_by_provider",
    "aggregate_quantities",
    "merge_with_existing",
]


def group_by_provider(items: Iterable[LineItem]) -> list[ProviderGroup]:
    """Partition line items by provider id.

    Groups are ordered by provider id and keep the input order of their
    members; every input item lands in exactly one group.
    """
    buckets: dict[int, list[LineItem]] = defaultdict(list)
    names: dict[int, str | None] = {}
    for item in items:
        if item.provider_id is None:
            raise ValueError(f"row {item.row_number}: line item has no provider")
        buckets[item.provider_id].append(item)
        names.setdefault(item.provider_id, item.provider_name)
    return [
        ProviderGroup(provider_id=pid, provider_name=names[pid], items=tuple(buckets[pid]))
        for pid in sorted(buckets)
    ]


def aggregate_quantities(items: Iterable[LineItem]) -> dict[int, int]:
    """Total uploaded quantity per item id (repeated items are summed)."""
    totals: dict[int, int] = defaultdict(int)
    for item in items:
        totals[item.item_id] += item.quantity
    return dict(totals)


def merge_with_existing(details: Sequence[ExistingDetail], items: Iterable[LineItem]) -> MergeResult:
    """Join uploaded quantities onto the existing request details.

    One ReconciledRow per detail, ordered by (item_id, detail_id), so the
    result does not depend on the order of either input. Details without an
    uploaded quantity keep planned_quantity=None.
    """
    items = list(items)
    planned = aggregate_quantities(items)
    known = {d.item_id for d in details}

    rows = tuple(
        ReconciledRow(
            detail_id=d.detail_id,
            item_id=d.item_id,
            item_name=d.item_name,
            expect_quantity=d.expect_quantity,
            ordered_quantity=d.ordered_quantity,
            planned_quantity=planned.get(d.item_id),
        )
        for d in sorted(details, key=lambda d: (d.item_id, d.detail_id))
    )
    outside = [i for i in items if i.item_id not in known]
    return MergeResult(
        rows=rows,
        outside_count=len(outside),
        outside_item_ids=tuple(sorted({i.item_id for i in outside})),
    )
