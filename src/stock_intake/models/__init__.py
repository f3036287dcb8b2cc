"""Domain models for the import request / import order upload pipeline."""

from .catalog import Catalog, CatalogItem, ExistingDetail, Provider
from .draft import DocumentDraft, DraftHeader, Flow, FlowState, ImportType
from .error_record import ErrorRecord
from .line_item import LineItem, ProviderGroup
from .reconciled import MergeResult, ReconciledRow
from .row_data import ExtractedRow, RawRow
from .upload_result import RowIssue, UploadResult

__all__ = [
    # Catalog snapshots
    "Catalog",
    "CatalogItem",
    "ExistingDetail",
    "Provider",
    # Rows
    "RawRow",
    "ExtractedRow",
    "LineItem",
    "ProviderGroup",
    "ReconciledRow",
    "MergeResult",
    # Draft / flow
    "DocumentDraft",
    "DraftHeader",
    "Flow",
    "FlowState",
    "ImportType",
    # Results
    "ErrorRecord",
    "RowIssue",
    "UploadResult",
]
