from __future__ import annotations

import re

from stock_intake.models import FlowState, LineItem, MergeResult, ProviderGroup, ReconciledRow, RowIssue, UploadResult
from stock_intake.services.summary import render_summary_body, render_summary_line

SUMMARY_RE = re.compile(r"^SUMMARY (\S+=\S+)( \S+=\S+)*$")


def _line(n: int, provider: int | None) -> LineItem:
    return LineItem(n, n, 1, provider, f"item-{n}", "pcs", 1)


def test_request_summary():
    items = (_line(1, 10), _line(2, 11), _line(3, 10))
    result = UploadResult(
        file_name="request.xlsx",
        state=FlowState.VALIDATED,
        total_rows=4,
        line_items=items,
        issues=(RowIssue(4, "UNKNOWN_ITEM", "item 4 not found in catalog"),),
        groups=(ProviderGroup(10, "ACME", (items[0], items[2])), ProviderGroup(11, "Globex", (items[1],))),
    )
    line = render_summary_line(result)
    assert line == "SUMMARY file=request.xlsx state=validated rows=4 valid=3 invalid=1 providers=2"
    assert SUMMARY_RE.match(line)


def test_order_summary():
    merge = MergeResult(
        rows=(ReconciledRow(70, 1, "Bolt", 10, 2, 4), ReconciledRow(71, 2, "Nut", 20, 0, None)),
        outside_count=2,
        outside_item_ids=(99,),
    )
    result = UploadResult(
        file_name="order.xlsx",
        state=FlowState.VALIDATED,
        total_rows=3,
        line_items=(_line(1, None),),
        merge=merge,
    )
    assert render_summary_line(result) == (
        "SUMMARY file=order.xlsx state=validated rows=3 valid=1 invalid=0 matched=1/2 outside_request=2"
    )


def test_rejected_upload_and_quoted_name():
    result = UploadResult(file_name="my upload.xlsx", state=FlowState.EMPTY, message="cannot read file")
    assert render_summary_line(result) == (
        'SUMMARY file="my upload.xlsx" state=empty rows=0 valid=0 invalid=0 providers=0'
    )


def test_body_is_the_line_without_label():
    result = UploadResult(file_name="my file.xlsx", state=FlowState.EMPTY, total_rows=1)
    body = render_summary_body(result)
    assert body == 'file="my file.xlsx" state=empty rows=1 valid=0 invalid=0 providers=0'
    assert render_summary_line(result) == "SUMMARY " + body
