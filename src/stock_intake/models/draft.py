from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from .line_item import LineItem, ProviderGroup
from .reconciled import MergeResult

"""Document draft and flow state models.

A DocumentDraft is created empty when a creation flow starts, mutated by every
successful upload / header edit, and consumed once by the submission
orchestrator. It is discarded on success and kept intact on failure so the
user can retry.
"""

__all__ = [
    "Flow",
    "FlowState",
    "ImportType",
    "DraftHeader",
    "DocumentDraft",
]


class Flow(Enum):
    """Which creation screen the pipeline is serving."""
    REQUEST = "request"  # import request: rows carry providers, grouped per provider
    ORDER = "order"  # import order: rows merged against an existing request


class FlowState(Enum):
    """Submission state machine.

    EMPTY → DECODED → VALIDATED → AWAITING_CONFIRMATION → SUBMITTING → (SUCCEEDED | FAILED)
    """
    EMPTY = "empty"
    DECODED = "decoded"
    VALIDATED = "validated"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ImportType(Enum):
    ORDER = "ORDER"  # planned import
    RETURN = "RETURN"  # returned goods


@dataclass(frozen=True)
class DraftHeader:
    reason: str = ""
    import_type: ImportType | None = ImportType.ORDER
    linked_document_id: int | None = None  # export request (request flow) / import request (order flow)
    receipt_date: str | None = None  # YYYY-MM-DD
    receipt_time: str | None = None  # HH:MM
    note: str = ""

    def with_changes(self, **changes: object) -> DraftHeader:
        return replace(self, **changes)  # type: ignore[arg-type]


@dataclass
class DocumentDraft:
    flow: Flow
    header: DraftHeader = field(default_factory=DraftHeader)
    file_name: str | None = None
    file_bytes: bytes | None = None
    line_items: list[LineItem] = field(default_factory=list)
    groups: list[ProviderGroup] = field(default_factory=list)  # request flow
    merge: MergeResult | None = None  # order flow

    @property
    def has_file(self) -> bool:
        return self.file_bytes is not None

    def clear_upload(self) -> None:
        """Drop the selected file and everything derived from it (header stays)."""
        self.file_name = None
        self.file_bytes = None
        self.line_items = []
        self.groups = []
        self.merge = None
