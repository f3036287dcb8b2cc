from __future__ import annotations

import re

from stock_intake.models import FlowState, UploadResult
from stock_intake.services.summary import render_summary_line

"""SUMMARY line format contract."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+file=(\S+|\"[^\"]+\")\s+state=(empty|validated)\s+rows=([0-9]+)\s+"
    r"valid=([0-9]+)\s+invalid=([0-9]+)\s+"
    r"(providers=([0-9]+)|matched=([0-9]+)/([0-9]+)\s+outside_request=([0-9]+))$"
)


def test_summary_pattern_example_lines():
    for line in (
        "SUMMARY file=request.xlsx state=validated rows=4 valid=3 invalid=1 providers=2",
        "SUMMARY file=order.xlsx state=validated rows=3 valid=2 invalid=1 matched=1/3 outside_request=1",
        'SUMMARY file="my file.xlsx" state=empty rows=0 valid=0 invalid=0 providers=0',
    ):
        assert SUMMARY_PATTERN.match(line), line


def test_rendered_line_matches_contract():
    line = render_summary_line(UploadResult(file_name="a b.xlsx", state=FlowState.EMPTY, total_rows=1))
    assert SUMMARY_PATTERN.match(line)
