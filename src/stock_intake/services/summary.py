from __future__ import annotations

from ..models.upload_result import UploadResult

"""SUMMARY line rendering for one processed upload.

Format:
    SUMMARY file={name} state={state} rows={total} valid={valid} invalid={invalid} providers={n}
    SUMMARY file={name} state={state} rows={total} valid={valid} invalid={invalid} matched={m}/{n} outside_request={k}

The first form is used for import requests, the second for import orders
(whichever of groups / merge the result carries).
"""


def render_summary_line(result: UploadResult) -> str:
    """Render a SUMMARY line from an UploadResult.

    Args:
        result: outcome of SubmissionOrchestrator.upload / complete_upload

    Returns:
        One line, starting with "SUMMARY ", with space separated key=value pairs.
        A file name containing spaces is quoted.

    Examples:
        >>> from stock_intake.models import FlowState, UploadResult
        >>> render_summary_line(UploadResult(file_name="in.xlsx", state=FlowState.EMPTY, total_rows=2))
        'SUMMARY file=in.xlsx state=empty rows=2 valid=0 invalid=0 providers=0'
    """
    return "SUMMARY " + render_summary_body(result)


def render_summary_body(result: UploadResult) -> str:
    """The key=value pairs of the SUMMARY line, without the label.

    The CLI logs this at SUMMARY level; the log formatter adds the label.
    """
    name = f'"{result.file_name}"' if " " in result.file_name else result.file_name
    parts = [
        f"file={name}",
        f"state={result.state.value}",
        f"rows={result.total_rows}",
        f"valid={result.valid_rows}",
        f"invalid={result.invalid_rows}",
    ]
    if result.merge is not None:
        parts.append(f"matched={result.merge.matched_count}/{len(result.merge.rows)}")
        parts.append(f"outside_request={result.merge.outside_count}")
    else:
        parts.append(f"providers={len(result.groups)}")
    return " ".join(parts)
