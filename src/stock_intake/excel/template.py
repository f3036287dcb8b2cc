from __future__ import annotations

from collections.abc import Iterable, Mapping
from io import BytesIO
from typing import Any

import pandas as pd

from ..models.draft import Flow
from .fields import FIELD_ALIASES, FLOW_FIELDS

"""Downloadable upload templates.

The header row uses the canonical (first) label of every field the flow
reads, which is also the highest-priority alias of the field extractor, so a
filled-in template always resolves every column.
"""

TEMPLATE_SHEET = "Template"
TEMPLATE_FILE_NAMES = {
    Flow.REQUEST: "import_request_template.xlsx",
    Flow.ORDER: "import_order_template.xlsx",
}


def template_columns(flow: Flow) -> list[str]:
    return [FIELD_ALIASES[f][0] for f in FLOW_FIELDS[flow]]


def build_template(flow: Flow, rows: Iterable[Mapping[str, Any]] | None = None) -> bytes:
    """Write the template workbook for a flow and return its bytes.

    rows (optional) are keyed by canonical field name (item_id, quantity, ...)
    or by column label; missing cells are left empty.
    """
    columns = template_columns(flow)
    fields = FLOW_FIELDS[flow]
    body: list[list[Any]] = []
    for row in rows or ():
        body.append([
            row.get(field, row.get(label))
            for field, label in zip(fields, columns, strict=True)
        ])
    df = pd.DataFrame(body, columns=columns)
    buf = BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=TEMPLATE_SHEET, index=False)
    return buf.getvalue()
