"""Dify knowledge-base target connector.

Talks to the Dify dataset REST API with ``requests``.  Document identity
is tracked with three dataset metadata fields that are created on first
use:

* ``provider_id``  (string)
* ``source_id``    (string)
* ``last_updated`` (time, unix seconds of the source modification time)

Documents in the dataset without these fields were not created by this
connector and are ignored by ``fetch_documents_metadata()``, so they are
never deleted.
"""

from __future__ import annotations

import json
import logging
import math
import threading
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import requests

from dok_sync.sync.models import DocumentMetadata

logger = logging.getLogger(__name__)

PAGE_LIMIT = 100

METADATA_FIELDS: dict[str, str] = {
    "provider_id": "string",
    "source_id": "string",
    "last_updated": "time",
}


class DifyAPIError(Exception):
    """A Dify API call failed."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class DifyTarget:
    """Target connector for one Dify dataset.

    Args:
        api_url: Base URL of the Dify API (e.g. ``https://api.dify.ai/v1``).
        api_key: Dataset API key.
        dataset_id: Dataset to synchronise into.
        name: Optional label used in logs and reports.
        indexing_technique: ``high_quality`` or ``economy``.
        timeout: Per-request read timeout in seconds.
        session: Optional pre-configured session shared by all threads.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        dataset_id: str,
        name: str | None = None,
        indexing_technique: str = "high_quality",
        timeout: float = 60,
        session: requests.Session | None = None,
    ) -> None:
        if not api_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid Dify API URL '{api_url}': must start with http:// or https://"
            )
        if not api_key.strip():
            raise ValueError("Dify API key cannot be empty")
        if not dataset_id.strip():
            raise ValueError("Dify dataset_id cannot be empty")

        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.dataset_id = dataset_id
        self.name = name or f"dify:{dataset_id}"
        self.indexing_technique = indexing_technique
        self.timeout = timeout
        self._shared_session = session
        self._thread_local = threading.local()
        self._fields_lock = threading.Lock()
        self._field_ids: dict[str, str] | None = None

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _get_session(self) -> requests.Session:
        """Get the shared session or a thread-local one."""
        if self._shared_session is not None:
            return self._shared_session
        if not hasattr(self._thread_local, "session"):
            session = requests.Session()
            session.headers["Authorization"] = f"Bearer {self.api_key}"
            self._thread_local.session = session
        return self._thread_local.session

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.api_url}/{path.lstrip('/')}"
        response = self._get_session().request(
            method, url, timeout=(10, self.timeout), **kwargs
        )
        if not response.ok:
            raise DifyAPIError(
                f"Dify API error: {response.status_code} {method} {path} - "
                f"{response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content:
            return {}
        return response.json()

    def _dataset_path(self, suffix: str) -> str:
        return f"datasets/{self.dataset_id}/{suffix}"

    # ------------------------------------------------------------------
    # Metadata fields
    # ------------------------------------------------------------------

    def _ensure_metadata_fields(self) -> dict[str, str]:
        """Return field name -> field id, creating missing fields once."""
        with self._fields_lock:
            if self._field_ids is not None:
                return self._field_ids

            data = self._request("GET", self._dataset_path("metadata"))
            existing = {
                field["name"]: field["id"]
                for field in data.get("doc_metadata", [])
            }
            for field_name, field_type in METADATA_FIELDS.items():
                if field_name in existing:
                    continue
                created = self._request(
                    "POST",
                    self._dataset_path("metadata"),
                    json={"type": field_type, "name": field_name},
                )
                existing[field_name] = created["id"]
                logger.info(
                    "Created Dify metadata field %s (%s)",
                    field_name,
                    field_type,
                )
            self._field_ids = existing
            return existing

    def _assign_metadata(
        self, dify_document_id: str, metadata: DocumentMetadata
    ) -> None:
        field_ids = self._ensure_metadata_fields()
        # Dify stores whole seconds; round up so an unchanged source is
        # never considered newer than its stored copy.
        last_updated = math.ceil(metadata.last_modified.timestamp())
        values = {
            "provider_id": metadata.provider_id,
            "source_id": metadata.source_id,
            "last_updated": last_updated,
        }
        self._request(
            "POST",
            self._dataset_path("documents/metadata"),
            json={
                "operation_data": [
                    {
                        "document_id": dify_document_id,
                        "metadata_list": [
                            {
                                "id": field_ids[name],
                                "name": name,
                                "value": value,
                            }
                            for name, value in values.items()
                        ],
                    }
                ]
            },
        )

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def _iter_documents(self) -> Iterator[dict]:
        page = 1
        while True:
            data = self._request(
                "GET",
                self._dataset_path("documents"),
                params={"page": page, "limit": PAGE_LIMIT},
            )
            yield from data.get("data", [])
            if not data.get("has_more"):
                return
            page += 1

    @staticmethod
    def _metadata_values(document: dict) -> dict[str, Any]:
        return {
            item["name"]: item.get("value")
            for item in document.get("doc_metadata") or []
        }

    def _to_metadata(self, document: dict) -> DocumentMetadata | None:
        values = self._metadata_values(document)
        provider_id = values.get("provider_id")
        source_id = values.get("source_id")
        if not provider_id or source_id is None:
            return None
        timestamp = values.get("last_updated") or document.get("updated_at")
        return DocumentMetadata(
            provider_id=provider_id,
            source_id=source_id,
            title=document.get("name", ""),
            last_modified=datetime.fromtimestamp(
                int(timestamp), tz=timezone.utc
            ),
        )

    def fetch_documents_metadata(self) -> list[DocumentMetadata]:
        """List the dataset documents managed by this connector."""
        documents = []
        for document in self._iter_documents():
            metadata = self._to_metadata(document)
            if metadata is not None:
                documents.append(metadata)
        return documents

    def _find_dify_document_id(self, document_id: str) -> str | None:
        for document in self._iter_documents():
            metadata = self._to_metadata(document)
            if metadata is not None and metadata.document_id == document_id:
                return document["id"]
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _upload_name(self, metadata: DocumentMetadata, file_path: Path) -> str:
        ext = metadata.file_extension or file_path.suffix.lstrip(".")
        return f"{metadata.title}.{ext}" if ext else metadata.title

    def create_document_from_file(
        self, metadata: DocumentMetadata, file_path: Path | str
    ) -> None:
        path = Path(file_path)
        process = {
            "indexing_technique": self.indexing_technique,
            "process_rule": {"mode": "automatic"},
        }
        with open(path, "rb") as fh:
            data = self._request(
                "POST",
                self._dataset_path("document/create_by_file"),
                data={"data": json.dumps(process)},
                files={"file": (self._upload_name(metadata, path), fh)},
            )
        dify_document_id = data["document"]["id"]
        self._assign_metadata(dify_document_id, metadata)
        logger.info(
            "Created Dify document %s for %s",
            dify_document_id,
            metadata.document_id,
        )

    def update_document_from_file(
        self, metadata: DocumentMetadata, file_path: Path | str
    ) -> None:
        path = Path(file_path)
        dify_document_id = self._find_dify_document_id(metadata.document_id)
        if dify_document_id is None:
            raise DifyAPIError(
                f"Document not found in Dify: {metadata.document_id}"
            )
        with open(path, "rb") as fh:
            self._request(
                "POST",
                self._dataset_path(
                    f"documents/{dify_document_id}/update_by_file"
                ),
                data={"data": json.dumps({"process_rule": {"mode": "automatic"}})},
                files={"file": (self._upload_name(metadata, path), fh)},
            )
        self._assign_metadata(dify_document_id, metadata)
        logger.info(
            "Updated Dify document %s for %s",
            dify_document_id,
            metadata.document_id,
        )

    def delete_document(self, document_id: str) -> None:
        dify_document_id = self._find_dify_document_id(document_id)
        if dify_document_id is None:
            logger.warning(
                "Document not found in Dify, skipping deletion: %s",
                document_id,
            )
            return
        self._request(
            "DELETE",
            self._dataset_path(f"documents/{dify_document_id}"),
        )
        logger.info(
            "Deleted Dify document %s (%s)", dify_document_id, document_id
        )


