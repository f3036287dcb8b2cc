from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass

from ..backend.contracts import CatalogSource, DetailSource, DocumentApi, fetch_all_details
from ..excel.fields import RowError, extract_rows, header_fields, required_column_groups
from ..excel.reader import DecodeError, decode_workbook
from ..logging.error_log import ErrorLogBuffer
from ..models.catalog import Catalog, ExistingDetail
from ..models.draft import DocumentDraft, DraftHeader, Flow, FlowState, ImportType
from ..models.error_record import FILE_LEVEL_ROW, ErrorRecord
from ..models.upload_result import RowIssue, UploadResult
from .catalog_validator import NoValidRowsError, require_valid, validate_rows
from .reconciler import group_by_provider, merge_with_existing
from .timing import LeadTimeGate, ReceiptFormatError

"""Submission orchestration for one document creation flow.

The orchestrator owns a single DocumentDraft and moves it through

    EMPTY → DECODED → VALIDATED → AWAITING_CONFIRMATION → SUBMITTING → SUCCEEDED | FAILED

- a file selection decodes, extracts and validates the upload; an unreadable
  file or one without any valid row sends the flow back to EMPTY and clears
  the file
- confirmation needs the header fields and the lead-time gate to pass
- submission creates the parent document, then attaches the details in a
  second call; if the second call fails the parent is cancelled and the
  failure is reported as OrphanedDocumentError
- FAILED is never a dead end: recover() returns to the last stable state with
  the draft and the loaded catalog intact
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ProcessingError",
    "SourceUnavailableError",
    "SourcesNotLoadedError",
    "InvalidTransitionError",
    "HeaderValidationError",
    "SubmissionError",
    "OrphanedDocumentError",
    "FileSelection",
    "SubmissionOrchestrator",
]

UPLOAD_STATES = {
    FlowState.EMPTY,
    FlowState.DECODED,
    FlowState.VALIDATED,
    FlowState.AWAITING_CONFIRMATION,
}


class ProcessingError(Exception):
    """Base exception for orchestration errors."""


class SourceUnavailableError(ProcessingError):
    """Catalog or request details could not be fetched; nothing can be validated."""


class SourcesNotLoadedError(ProcessingError):
    """Validation attempted before the catalog (and details) were loaded."""


class InvalidTransitionError(ProcessingError):
    pass


class HeaderValidationError(ProcessingError):
    """A header field is missing or invalid; `field` names it."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class SubmissionError(ProcessingError):
    """The document API rejected the submission."""


class OrphanedDocumentError(SubmissionError):
    """Parent document created but its details could not be attached.

    compensated tells whether the parent was cancelled afterwards. When it was
    not, the document is left incomplete and needs operator follow-up.
    """

    def __init__(self, document_id: int, compensated: bool, cause: Exception) -> None:
        state = "cancelled" if compensated else "left INCOMPLETE, needs manual cleanup"
        super().__init__(
            f"document #{document_id} was created but its details failed to attach ({cause}); "
            f"document {state}"
        )
        self.document_id = document_id
        self.compensated = compensated


@dataclass(frozen=True)
class FileSelection:
    """Identity of one file pick; a newer selection supersedes older ones."""
    token: int
    name: str
    data: bytes


class SubmissionOrchestrator:
    def __init__(
        self,
        flow: Flow,
        *,
        catalog_source: CatalogSource,
        gate: LeadTimeGate,
        document_api: DocumentApi | None = None,
        detail_source: DetailSource | None = None,
        linked_document_id: int | None = None,
        error_log: ErrorLogBuffer | None = None,
        page_size: int = 50,
        reason_max_length: int = 150,
    ) -> None:
        if flow is Flow.ORDER and (detail_source is None or linked_document_id is None):
            raise ValueError("order flow needs a detail source and the import request id")
        self.flow = flow
        self.catalog_source = catalog_source
        self.detail_source = detail_source
        self.document_api = document_api
        self.gate = gate
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()
        self.page_size = page_size
        self.reason_max_length = reason_max_length

        self.state = FlowState.EMPTY
        self.draft: DocumentDraft | None = self._new_draft(linked_document_id)
        self.document_id: int | None = None
        self.last_error: Exception | None = None
        self.orphaned_document_ids: list[int] = []

        self._catalog: Catalog | None = None
        self._details: list[ExistingDetail] | None = None
        self._selection: FileSelection | None = None
        self._tokens = itertools.count(1)
        self._stable_state = FlowState.EMPTY

    # ------------------------------------------------------------------
    # sources
    # ------------------------------------------------------------------
    def _new_draft(self, linked_document_id: int | None) -> DocumentDraft:
        receipt_date, receipt_time = self.gate.default_receipt()
        header = DraftHeader(
            linked_document_id=linked_document_id,
            receipt_date=receipt_date,
            receipt_time=receipt_time,
            import_type=ImportType.ORDER if self.flow is Flow.REQUEST else None,
        )
        return DocumentDraft(flow=self.flow, header=header)

    @property
    def sources_loaded(self) -> bool:
        if self._catalog is None:
            return False
        return self.flow is Flow.REQUEST or self._details is not None

    @property
    def catalog(self) -> Catalog | None:
        return self._catalog

    @property
    def existing_details(self) -> list[ExistingDetail] | None:
        return self._details

    def load_sources(self) -> None:
        """Fetch the catalog (and, for orders, every page of request details).

        Raises SourceUnavailableError right away; validation cannot run without them.
        """
        try:
            catalog = self.catalog_source.fetch_catalog()
        except Exception as e:
            raise SourceUnavailableError(f"cannot load item/provider catalog: {e}") from e
        if catalog.is_empty:
            logger.warning("catalog has no items; uploads will not validate")

        details = None
        if self.flow is Flow.ORDER:
            assert self.detail_source is not None and self.draft is not None
            request_id = self.draft.header.linked_document_id
            try:
                details = fetch_all_details(self.detail_source, request_id, self.page_size)
            except Exception as e:
                raise SourceUnavailableError(f"cannot load details of import request #{request_id}: {e}") from e
            logger.info("import request #%s has %d detail lines", request_id, len(details))

        self._catalog = catalog
        self._details = details
        logger.info("catalog loaded items=%d providers=%d", len(catalog.items), len(catalog.providers))

    # ------------------------------------------------------------------
    # upload
    # ------------------------------------------------------------------
    def _require_state(self, allowed: set[FlowState], action: str) -> None:
        if self.state not in allowed:
            raise InvalidTransitionError(f"cannot {action} while {self.state.value}")

    def begin_upload(self, name: str, data: bytes) -> FileSelection:
        """Register a new file pick. Any earlier pick still in flight becomes stale."""
        self._require_state(UPLOAD_STATES, "select a file")
        selection = FileSelection(token=next(self._tokens), name=name, data=data)
        self._selection = selection
        assert self.draft is not None
        self.draft.clear_upload()
        self.state = FlowState.EMPTY
        self._stable_state = FlowState.EMPTY
        return selection

    def complete_upload(self, selection: FileSelection) -> UploadResult | None:
        """Decode and validate a selection.

        Returns None (and changes nothing) when a newer selection superseded
        this one.
        """
        if self._selection is None or selection.token != self._selection.token:
            logger.debug("discarding superseded upload %s (token=%d)", selection.name, selection.token)
            return None
        if not self.sources_loaded:
            raise SourcesNotLoadedError("catalog not loaded yet; call load_sources() first")
        self._require_state(UPLOAD_STATES, "process a file")

        try:
            return self._process(selection)
        except Exception as e:
            self._record(selection.name, "<FILE_LEVEL>", FILE_LEVEL_ROW, "UNEXPECTED_ERROR", str(e))
            assert self.draft is not None
            self.draft.clear_upload()
            self._fail(e)
            raise ProcessingError(f"unexpected failure processing '{selection.name}': {e}") from e
        finally:
            if self._selection is selection:
                self._selection = None

    def upload(self, name: str, data: bytes) -> UploadResult:
        result = self.complete_upload(self.begin_upload(name, data))
        assert result is not None
        return result

    def _process(self, selection: FileSelection) -> UploadResult:
        draft = self.draft
        assert draft is not None and self._catalog is not None

        try:
            sheet = decode_workbook(
                selection.data,
                file_name=selection.name,
                required_columns=required_column_groups(self.flow),
            )
        except DecodeError as e:
            self._record(selection.name, "<FILE_LEVEL>", FILE_LEVEL_ROW, "DECODE_ERROR", str(e))
            logger.error("file=%s decode failed: %s", selection.name, e)
            return self._reject(selection.name, f"cannot read file: {e}")

        draft.file_name = selection.name
        draft.file_bytes = selection.data
        self.state = FlowState.DECODED
        logger.info("file=%s sheet=%s rows=%d", selection.name, sheet.sheet_name, len(sheet.rows))

        extracted, errors = extract_rows(sheet.rows, self.flow)
        result = validate_rows(extracted, self._catalog, self.flow)
        row_errors: list[RowError] = sorted(errors + result.errors, key=lambda e: e.row_number)
        for err in row_errors:
            logger.warning("file=%s %s", selection.name, err)
            self._record(selection.name, sheet.sheet_name, err.row_number, err.error_type, err.message)
        issues = tuple(RowIssue(e.row_number, e.error_type, e.message) for e in row_errors)

        try:
            require_valid(result)
        except NoValidRowsError as e:
            return self._reject(selection.name, str(e), total_rows=len(sheet.rows), issues=issues)

        draft.line_items = list(result.line_items)
        prefill: dict[str, str] = {}
        if self.flow is Flow.REQUEST:
            draft.groups = group_by_provider(result.line_items)
            logger.info(
                "file=%s valid=%d invalid=%d providers=%d",
                selection.name, len(result.line_items), len(row_errors), len(draft.groups),
            )
        else:
            assert self._details is not None
            merge = merge_with_existing(self._details, result.line_items)
            if merge.outside_count:
                logger.warning(
                    "file=%s %d row(s) outside import request #%s ignored: items %s",
                    selection.name, merge.outside_count, draft.header.linked_document_id,
                    list(merge.outside_item_ids),
                )
            if merge.matched_count == 0:
                return self._reject(
                    selection.name,
                    f"no item in the file belongs to import request #{draft.header.linked_document_id}",
                    total_rows=len(sheet.rows),
                    issues=issues,
                    merge=merge,
                )
            draft.merge = merge
            prefill = header_fields(sheet.rows)
            if prefill:
                draft.header = draft.header.with_changes(**prefill)
            logger.info(
                "file=%s planned quantities for %d/%d request items",
                selection.name, merge.matched_count, len(merge.rows),
            )

        self.state = FlowState.VALIDATED
        self._stable_state = FlowState.VALIDATED
        return UploadResult(
            file_name=selection.name,
            state=self.state,
            total_rows=len(sheet.rows),
            line_items=tuple(result.line_items),
            issues=issues,
            groups=tuple(draft.groups),
            merge=draft.merge,
            header_prefill=prefill,
        )

    def _reject(self, file_name: str, message: str, **details: object) -> UploadResult:
        """Return to EMPTY with the file cleared; the user has to upload again."""
        assert self.draft is not None
        self.draft.clear_upload()
        self.state = FlowState.EMPTY
        self._stable_state = FlowState.EMPTY
        return UploadResult(file_name=file_name, state=self.state, message=message, **details)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # header + confirmation
    # ------------------------------------------------------------------
    def update_header(self, **changes: object) -> DraftHeader:
        """Edit header fields. Editing while awaiting confirmation re-opens the draft."""
        self._require_state(UPLOAD_STATES, "edit the header")
        assert self.draft is not None
        if isinstance(changes.get("import_type"), str):
            changes["import_type"] = ImportType(changes["import_type"])
        self.draft.header = self.draft.header.with_changes(**changes)
        if self.state is FlowState.AWAITING_CONFIRMATION:
            self.state = FlowState.VALIDATED
            self._stable_state = FlowState.VALIDATED
        return self.draft.header

    def _check_header(self) -> None:
        assert self.draft is not None
        header = self.draft.header
        if self.flow is Flow.REQUEST:
            if not header.reason or not header.reason.strip():
                raise HeaderValidationError("reason", "import reason is required")
            if len(header.reason) > self.reason_max_length:
                raise HeaderValidationError(
                    "reason", f"import reason is limited to {self.reason_max_length} characters"
                )
            if header.import_type is None:
                raise HeaderValidationError("import_type", "import type is required")
        elif header.linked_document_id is None:
            raise HeaderValidationError("linked_document_id", "select an import request")

        if not header.receipt_date:
            raise HeaderValidationError("receipt_date", "receipt date is required")
        if not header.receipt_time:
            raise HeaderValidationError("receipt_time", "receipt time is required")
        try:
            self.gate.check(header.receipt_date, header.receipt_time)
        except ReceiptFormatError as e:
            field = "receipt_date" if "date" in str(e) else "receipt_time"
            raise HeaderValidationError(field, str(e)) from e

    def request_confirmation(self) -> DocumentDraft:
        """VALIDATED → AWAITING_CONFIRMATION once the header passes every check.

        Raises HeaderValidationError or LeadTimeViolationError and stays in
        VALIDATED otherwise.
        """
        if self.state is FlowState.AWAITING_CONFIRMATION:
            assert self.draft is not None
            return self.draft
        self._require_state({FlowState.VALIDATED}, "request confirmation")
        self._check_header()
        self.state = FlowState.AWAITING_CONFIRMATION
        self._stable_state = FlowState.AWAITING_CONFIRMATION
        assert self.draft is not None
        return self.draft

    def cancel_confirmation(self) -> None:
        self._require_state({FlowState.AWAITING_CONFIRMATION}, "cancel confirmation")
        self.state = FlowState.VALIDATED
        self._stable_state = FlowState.VALIDATED

    # ------------------------------------------------------------------
    # submission
    # ------------------------------------------------------------------
    def confirm(self) -> int:
        """Submit the confirmed draft; returns the created document id."""
        self._require_state({FlowState.AWAITING_CONFIRMATION}, "submit")
        if self.document_api is None:
            raise SubmissionError("no document API configured; uploads can only be checked")
        draft = self.draft
        assert draft is not None

        # time may have passed since confirmation was requested
        try:
            self._check_header()
        except Exception:
            self.state = FlowState.VALIDATED
            self._stable_state = FlowState.VALIDATED
            raise

        self.state = FlowState.SUBMITTING
        file_label = draft.file_name or "<draft>"
        try:
            document_id = self.document_api.create_document(self.flow, draft.header)
        except Exception as e:
            self._record(file_label, "<SUBMIT>", FILE_LEVEL_ROW, "CREATE_DOCUMENT_ERROR", str(e))
            error = SubmissionError(f"could not create {self.flow.value} document: {e}")
            self._fail(error)
            raise error from e
        logger.info("created %s document #%s", self.flow.value, document_id)

        try:
            if self.flow is Flow.REQUEST:
                self.document_api.attach_lines(document_id, draft.groups)
            else:
                assert draft.file_name is not None and draft.file_bytes is not None
                self.document_api.attach_file(document_id, draft.file_name, draft.file_bytes)
        except Exception as e:
            compensated = self._compensate(document_id)
            error = OrphanedDocumentError(document_id, compensated, e)
            self._record(file_label, "<SUBMIT>", FILE_LEVEL_ROW, "ATTACH_DETAILS_ERROR", str(error))
            self._fail(error)
            raise error from e

        self.document_id = document_id
        self.state = FlowState.SUCCEEDED
        self._stable_state = FlowState.SUCCEEDED
        self.draft = None
        return document_id

    def _compensate(self, document_id: int) -> bool:
        try:
            self.document_api.cancel_document(document_id)
        except Exception as e:
            logger.error("document #%s could not be cancelled: %s", document_id, e)
            self.orphaned_document_ids.append(document_id)
            return False
        logger.warning("document #%s cancelled after detail attachment failed", document_id)
        return True

    def _fail(self, error: Exception) -> None:
        self.last_error = error
        self.state = FlowState.FAILED

    def recover(self) -> FlowState:
        """FAILED → last stable state; draft and loaded sources are kept."""
        self._require_state({FlowState.FAILED}, "recover")
        self.state = self._stable_state
        self.last_error = None
        return self.state

    def _record(self, file: str, sheet: str, row: int, error_type: str, message: str) -> None:
        self.error_log.append(ErrorRecord.create(file, sheet, row, error_type, message))
