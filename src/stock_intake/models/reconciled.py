from __future__ import annotations

from dataclasses import dataclass

"""Merge reconciliation results (order flow)."""

__all__ = [
    "NOT_PROVIDED_LABEL",
    "ReconciledRow",
    "MergeResult",
]

# Display text for a detail the upload did not mention
NOT_PROVIDED_LABEL = "Chưa có"


@dataclass(frozen=True)
class ReconciledRow:
    """An existing request detail joined with the uploaded planned quantity.

    planned_quantity None means the upload did not provide a value for this
    item. That is a different state from an explicit zero.
    """
    detail_id: int
    item_id: int
    item_name: str
    expect_quantity: int
    ordered_quantity: int
    planned_quantity: int | None = None

    @property
    def is_provided(self) -> bool:
        return self.planned_quantity is not None

    @property
    def remaining_quantity(self) -> int:
        return self.expect_quantity - self.ordered_quantity

    @property
    def planned_display(self) -> str:
        if self.planned_quantity is None:
            return NOT_PROVIDED_LABEL
        return str(self.planned_quantity)


@dataclass(frozen=True)
class MergeResult:
    rows: tuple[ReconciledRow, ...]
    outside_count: int = 0  # uploaded items that are not part of the request
    outside_item_ids: tuple[int, ...] = ()

    @property
    def matched_count(self) -> int:
        return sum(1 for r in self.rows if r.is_provided)
