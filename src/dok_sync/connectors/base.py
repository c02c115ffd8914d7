"""Capability contracts consumed by the reconciliation engine.

Connectors are structural: any object with the listed attributes and
methods qualifies, no base class is involved.  Each method may be a plain
(blocking) function or an ``async def``; the core awaits coroutines and
runs blocking calls in a worker thread.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable
from pathlib import Path
from typing import Protocol, Union, runtime_checkable

from dok_sync.sync.models import DocumentMetadata

MetadataListing = Union[
    list[DocumentMetadata],
    Iterable[DocumentMetadata],
    AsyncIterable[DocumentMetadata],
]


@runtime_checkable
class SourceConnector(Protocol):
    """Read-only document listing and content retrieval for one upstream.

    Contract:
    - ``fetch_documents_metadata()`` returns identity, title and
      modification time only, never content
    - ``download_document_content(document_id)`` stages the content as a
      self-contained file (see ``dok_sync.sync.staging.current_staging``)
      and returns its path
    """

    provider_id: str

    def fetch_documents_metadata(self) -> MetadataListing: ...

    def download_document_content(self, document_id: str) -> Path | str: ...


@runtime_checkable
class TargetConnector(Protocol):
    """Listing plus create/update/delete for one downstream store."""

    def fetch_documents_metadata(self) -> MetadataListing: ...

    def create_document_from_file(
        self, metadata: DocumentMetadata, file_path: Path | str
    ) -> None: ...

    def update_document_from_file(
        self, metadata: DocumentMetadata, file_path: Path | str
    ) -> None: ...

    def delete_document(self, document_id: str) -> None: ...
