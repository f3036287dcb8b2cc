from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..models.catalog import Catalog, ExistingDetail
from ..models.draft import DraftHeader, Flow
from ..models.line_item import ProviderGroup

"""Contracts of the backend collaborators.

Transport, authentication and the wire format are outside this package; the
pipeline only depends on these protocols. backend.snapshot provides a
file-backed implementation of the read side.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "DetailPage",
    "CatalogSource",
    "DetailSource",
    "ConfigurationSource",
    "DocumentApi",
    "fetch_all_details",
]


@dataclass(frozen=True)
class DetailPage:
    content: list[ExistingDetail]
    page: int  # 1-based
    limit: int
    total: int  # total details across all pages


@runtime_checkable
class CatalogSource(Protocol):
    def fetch_catalog(self) -> Catalog:
        """All items (with their provider ids) and all providers."""
        ...


@runtime_checkable
class DetailSource(Protocol):
    def fetch_details(self, request_id: int, page: int, limit: int) -> DetailPage:
        """One page of an import request's expected line items."""
        ...


@runtime_checkable
class ConfigurationSource(Protocol):
    def fetch_lead_time(self) -> str | None:
        """Minimum lead time as HH:MM:SS, or None when not configured."""
        ...


@runtime_checkable
class DocumentApi(Protocol):
    def create_document(self, flow: Flow, header: DraftHeader) -> int:
        """Create the parent document and return its id."""
        ...

    def attach_lines(self, document_id: int, groups: Sequence[ProviderGroup]) -> None:
        """Attach structured line items (request flow)."""
        ...

    def attach_file(self, document_id: int, file_name: str, data: bytes) -> None:
        """Attach the uploaded workbook as the detail source (order flow)."""
        ...

    def cancel_document(self, document_id: int) -> None:
        """Cancel a parent document whose details could not be attached."""
        ...


def fetch_all_details(source: DetailSource, request_id: int, page_size: int = 50) -> list[ExistingDetail]:
    """Walk every page of a request's details."""
    details: list[ExistingDetail] = []
    page = 1
    while True:
        result = source.fetch_details(request_id, page, page_size)
        details.extend(result.content)
        logger.debug(
            "request=%s page=%d fetched=%d total=%d", request_id, page, len(details), result.total
        )
        if not result.content or len(details) >= result.total:
            break
        page += 1
    return details
