from __future__ import annotations

from dataclasses import dataclass, field

from .draft import FlowState
from .line_item import LineItem, ProviderGroup
from .reconciled import MergeResult

"""Outcome of one upload (decode → extract → validate → reconcile).

UploadResult is what the orchestrator returns to the screen for every file
selection: either the accepted rows plus row warnings, or the reason the whole
upload was rejected.
"""

__all__ = [
    "RowIssue",
    "UploadResult",
]


@dataclass(frozen=True)
class RowIssue:
    """A row-level problem reported back to the user as a warning."""
    row_number: int
    error_type: str
    message: str


@dataclass(frozen=True)
class UploadResult:
    file_name: str
    state: FlowState  # state the flow landed in after this upload
    total_rows: int = 0
    line_items: tuple[LineItem, ...] = ()
    issues: tuple[RowIssue, ...] = ()
    groups: tuple[ProviderGroup, ...] = ()
    merge: MergeResult | None = None
    message: str | None = None  # set when the upload was rejected as a whole
    header_prefill: dict[str, str] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.message is None and bool(self.line_items)

    @property
    def valid_rows(self) -> int:
        return len(self.line_items)

    @property
    def invalid_rows(self) -> int:
        return len(self.issues)
