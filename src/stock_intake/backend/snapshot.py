from __future__ import annotations

from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.catalog import Catalog, CatalogItem, ExistingDetail, Provider
from .contracts import DetailPage

"""YAML snapshot of the backend's read side.

Used by the CLI (and tests) to check an upload offline. Keys follow the
backend's response field names:

    items:
      - {id: 1, name: Bolt M6, measurementUnit: box, totalMeasurementValue: 100, providerIds: [1, 2]}
    providers:
      - {id: 1, name: ACME}
    importRequests:
      7:
        - {importRequestDetailId: 70, itemId: 1, itemName: Bolt M6, expectQuantity: 10, orderedQuantity: 2}
    configuration:
      createRequestTimeAtLeast: "12:00:00"
"""

__all__ = [
    "SnapshotError",
    "SnapshotSource",
]

_ID = {"type": "integer"}

SNAPSHOT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "name"],
                "properties": {
                    "id": _ID,
                    "name": {"type": "string"},
                    "measurementUnit": {"type": ["string", "null"]},
                    "totalMeasurementValue": {"type": ["number", "null"]},
                    "providerIds": {"type": "array", "items": _ID},
                },
            },
        },
        "providers": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "name"],
                "properties": {"id": _ID, "name": {"type": "string"}},
            },
        },
        "importRequests": {
            "type": "object",
            "additionalProperties": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": ["importRequestDetailId", "itemId", "expectQuantity"],
                    "properties": {
                        "importRequestDetailId": _ID,
                        "itemId": _ID,
                        "itemName": {"type": "string"},
                        "expectQuantity": {"type": "integer"},
                        "orderedQuantity": {"type": "integer"},
                    },
                },
            },
        },
        "configuration": {
            "type": "object",
            "properties": {"createRequestTimeAtLeast": {"type": ["string", "null"]}},
        },
    },
}


class SnapshotError(Exception):
    pass


class SnapshotSource:
    """Catalog, detail and configuration source backed by one YAML file."""

    def __init__(self, data: dict[str, Any]) -> None:
        try:
            jsonschema.validate(data, SNAPSHOT_SCHEMA)
        except ValidationError as e:
            raise SnapshotError(f"snapshot validation failed: {e.message}") from e
        self._data = data

    @classmethod
    def from_file(cls, path: Path) -> SnapshotSource:
        if not path.exists():
            raise SnapshotError(f"snapshot file not found: {path}")
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise SnapshotError(f"invalid yaml: {e}") from e
        if not isinstance(data, dict):
            raise SnapshotError("snapshot root must be a mapping")
        return cls(data)

    def fetch_catalog(self) -> Catalog:
        items = [
            CatalogItem(
                id=raw["id"],
                name=raw["name"],
                measurement_unit=raw.get("measurementUnit"),
                total_measurement_value=raw.get("totalMeasurementValue"),
                provider_ids=frozenset(raw.get("providerIds") or ()),
            )
            for raw in self._data.get("items") or []
        ]
        providers = [Provider(id=raw["id"], name=raw["name"]) for raw in self._data.get("providers") or []]
        return Catalog.from_records(items, providers)

    def fetch_details(self, request_id: int, page: int, limit: int) -> DetailPage:
        requests = self._data.get("importRequests") or {}
        # YAML keys may be ints or strings
        raw_details = requests.get(request_id, requests.get(str(request_id)))
        if raw_details is None:
            raise SnapshotError(f"import request {request_id} not found in snapshot")
        details = [
            ExistingDetail(
                detail_id=raw["importRequestDetailId"],
                item_id=raw["itemId"],
                item_name=raw.get("itemName", ""),
                expect_quantity=raw["expectQuantity"],
                ordered_quantity=raw.get("orderedQuantity", 0),
            )
            for raw in raw_details
        ]
        start = (page - 1) * limit
        return DetailPage(content=details[start:start + limit], page=page, limit=limit, total=len(details))

    def fetch_lead_time(self) -> str | None:
        return (self._data.get("configuration") or {}).get("createRequestTimeAtLeast")
