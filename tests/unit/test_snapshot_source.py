from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml

from stock_intake.backend.contracts import (
    CatalogSource,
    ConfigurationSource,
    DetailPage,
    DetailSource,
    fetch_all_details,
)
from stock_intake.backend.snapshot import SnapshotError, SnapshotSource
from stock_intake.models import ExistingDetail


def test_snapshot_implements_read_protocols(snapshot_source):
    assert isinstance(snapshot_source, CatalogSource)
    assert isinstance(snapshot_source, DetailSource)
    assert isinstance(snapshot_source, ConfigurationSource)


def test_fetch_catalog(snapshot_source):
    catalog = snapshot_source.fetch_catalog()
    assert catalog.item(1).provider_ids == frozenset({10, 11})
    assert catalog.item(3).measurement_unit is None
    assert catalog.provider(12).name == "Initech"
    assert catalog.item(999) is None


def test_fetch_details_pages(snapshot_source):
    first = snapshot_source.fetch_details(7, 1, 2)
    second = snapshot_source.fetch_details(7, 2, 2)
    assert first.total == 3
    assert [d.detail_id for d in first.content] == [70, 71]
    assert [d.detail_id for d in second.content] == [72]
    assert first.content[1].ordered_quantity == 0


def test_unknown_request(snapshot_source):
    with pytest.raises(SnapshotError, match="99"):
        snapshot_source.fetch_details(99, 1, 50)


def test_fetch_lead_time(snapshot_source):
    assert snapshot_source.fetch_lead_time() == "12:00:00"
    assert SnapshotSource({}).fetch_lead_time() is None


def test_from_file_with_string_request_keys(tmp_path: Path, snapshot_data):
    snapshot_data["importRequests"] = {"7": snapshot_data["importRequests"][7]}
    p = tmp_path / "snap.yml"
    p.write_text(yaml.safe_dump(snapshot_data, allow_unicode=True), encoding="utf-8")
    source = SnapshotSource.from_file(p)
    assert len(fetch_all_details(source, 7, page_size=1)) == 3


@pytest.mark.parametrize("data", [
    {"items": [{"id": "one", "name": "Bolt"}]},
    {"providers": [{"id": 1}]},
    {"unexpected": True},
])
def test_invalid_snapshot(data):
    with pytest.raises(SnapshotError, match="validation failed"):
        SnapshotSource(data)


def test_from_file_errors(tmp_path: Path):
    with pytest.raises(SnapshotError, match="not found"):
        SnapshotSource.from_file(tmp_path / "missing.yml")
    bad = tmp_path / "bad.yml"
    bad.write_text("- 1\n", encoding="utf-8")
    with pytest.raises(SnapshotError, match="mapping"):
        SnapshotSource.from_file(bad)


def test_fetch_all_details_stops_on_total():
    detail = ExistingDetail(1, 1, "Bolt", 1)
    source = MagicMock()
    source.fetch_details.side_effect = [
        DetailPage([detail, detail], 1, 2, 3),
        DetailPage([detail], 2, 2, 3),
    ]
    assert len(fetch_all_details(source, 5, page_size=2)) == 3
    assert source.fetch_details.call_count == 2
    source.fetch_details.assert_called_with(5, 2, 2)


def test_fetch_all_details_stops_on_empty_page():
    source = MagicMock()
    source.fetch_details.return_value = DetailPage([], 1, 50, 10)
    assert fetch_all_details(source, 5) == []
    assert source.fetch_details.call_count == 1
