# Shared pytest fixtures
from __future__ import annotations

import os
import tempfile
from datetime import UTC, datetime
from io import BytesIO
from pathlib import Path
from unittest.mock import MagicMock

import pandas as pd
import pytest

from stock_intake.backend.contracts import DocumentApi
from stock_intake.backend.snapshot import SnapshotSource
from stock_intake.logging.init import reset_logging
from stock_intake.services.timing import LeadTimeGate

FIXED_NOW = datetime(2030, 1, 1, 8, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _isolate_intake_env():
    """Restore STOCK_INTAKE_* env vars after each test (the CLI's .env loading mutates os.environ)."""
    saved = {k: v for k, v in os.environ.items() if k.startswith("STOCK_INTAKE_")}
    yield
    for k in [k for k in os.environ if k.startswith("STOCK_INTAKE_")]:
        del os.environ[k]
    os.environ.update(saved)


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """timezone: UTC
lead_time: "12:00:00"
detail_page_size: 2
error_log_dir: ./logs
reason_max_length: 150
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "intake.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def snapshot_data() -> dict:
    return {
        "items": [
            {"id": 1, "name": "Bolt M6", "measurementUnit": "box", "totalMeasurementValue": 100, "providerIds": [10, 11]},
            {"id": 2, "name": "Nut M6", "measurementUnit": "box", "totalMeasurementValue": 200, "providerIds": [10]},
            {"id": 3, "name": "Washer", "providerIds": [11]},
            {"id": 4, "name": "Hinge", "measurementUnit": "pcs", "totalMeasurementValue": 1, "providerIds": [11]},
        ],
        "providers": [
            {"id": 10, "name": "ACME"},
            {"id": 11, "name": "Globex"},
            {"id": 12, "name": "Initech"},
        ],
        "importRequests": {
            7: [
                {"importRequestDetailId": 70, "itemId": 1, "itemName": "Bolt M6", "expectQuantity": 10, "orderedQuantity": 2},
                {"importRequestDetailId": 71, "itemId": 2, "itemName": "Nut M6", "expectQuantity": 20},
                {"importRequestDetailId": 72, "itemId": 3, "itemName": "Washer", "expectQuantity": 5},
            ],
        },
        "configuration": {"createRequestTimeAtLeast": "12:00:00"},
    }


@pytest.fixture()
def snapshot_source(snapshot_data: dict) -> SnapshotSource:
    return SnapshotSource(snapshot_data)


@pytest.fixture()
def catalog(snapshot_source: SnapshotSource):
    return snapshot_source.fetch_catalog()


@pytest.fixture()
def gate() -> LeadTimeGate:
    """12h gate with a frozen clock (2030-01-01 08:00 UTC)."""
    return LeadTimeGate(tz="UTC", clock=lambda: FIXED_NOW)


@pytest.fixture()
def document_api() -> MagicMock:
    api = MagicMock(spec=DocumentApi)
    api.create_document.return_value = 501
    return api


def workbook_bytes(rows: list[list[object]], sheet: str = "Sheet1") -> bytes:
    """Build an .xlsx in memory; the first row is the header."""
    buf = BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
    return buf.getvalue()


@pytest.fixture()
def make_workbook():
    return workbook_bytes
