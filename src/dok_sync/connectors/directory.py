"""Local directory target connector.

A minimal on-disk knowledge store.  Documents are copied into ``root``
and described by an index file (``.dok-index.json``) keyed by document
id::

    {
      "version": 1,
      "documents": {
        "notes:guide.md": {
          "title": "guide",
          "last_modified": "2026-01-01T00:00:00+00:00",
          "file_extension": "md",
          "file": "guide_1a2b3c4d.md"
        }
      }
    }

The index is the store's own listing, not sync state: ``last_modified``
records the source modification time of the stored copy.  Index writes
are atomic and serialised with a lock since the reconciler calls this
connector from several worker threads at once.
"""

from __future__ import annotations

import logging
import shutil
import threading
from datetime import datetime
from pathlib import Path

from dok_sync.file_handler import read_json, write_json_atomic
from dok_sync.sync.models import DocumentMetadata, parse_document_id
from dok_sync.sync.staging import document_hash, sanitize_title

logger = logging.getLogger(__name__)

INDEX_FILENAME = ".dok-index.json"


class DirectoryTarget:
    """Target connector storing documents in a local directory.

    Args:
        root: Directory holding the stored documents and the index.
        name: Optional label used in logs and reports.
    """

    def __init__(self, root: str | Path, name: str | None = None) -> None:
        self.root = Path(root).expanduser().resolve()
        self.name = name or f"directory:{self.root.name}"
        self._lock = threading.Lock()

    @property
    def index_path(self) -> Path:
        return self.root / INDEX_FILENAME

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def _load_index(self) -> dict:
        data = read_json(self.index_path)
        if data is None:
            return {"version": 1, "documents": {}}
        return data

    def _save_index(self, index: dict) -> None:
        write_json_atomic(self.index_path, index)

    # ------------------------------------------------------------------
    # Connector API
    # ------------------------------------------------------------------

    def fetch_documents_metadata(self) -> list[DocumentMetadata]:
        """List the documents recorded in the index."""
        with self._lock:
            index = self._load_index()

        documents = []
        for document_id, entry in index.get("documents", {}).items():
            provider_id, source_id = parse_document_id(document_id)
            documents.append(
                DocumentMetadata(
                    provider_id=provider_id,
                    source_id=source_id,
                    title=entry["title"],
                    last_modified=datetime.fromisoformat(
                        entry["last_modified"]
                    ),
                    file_extension=entry.get("file_extension"),
                )
            )
        return documents

    def create_document_from_file(
        self, metadata: DocumentMetadata, file_path: Path | str
    ) -> None:
        self._store(metadata, Path(file_path))
        logger.info("Created document %s", metadata.document_id)

    def update_document_from_file(
        self, metadata: DocumentMetadata, file_path: Path | str
    ) -> None:
        with self._lock:
            known = metadata.document_id in self._load_index()["documents"]
        if not known:
            raise KeyError(
                f"Document not found in {self.name}: {metadata.document_id}"
            )
        self._store(metadata, Path(file_path))
        logger.info("Updated document %s", metadata.document_id)

    def delete_document(self, document_id: str) -> None:
        with self._lock:
            index = self._load_index()
            entry = index["documents"].pop(document_id, None)
            if entry is None:
                logger.warning(
                    "Document not found in %s, skipping deletion: %s",
                    self.name,
                    document_id,
                )
                return
            (self.root / entry["file"]).unlink(missing_ok=True)
            self._save_index(index)
        logger.info("Deleted document %s", document_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _store(self, metadata: DocumentMetadata, file_path: Path) -> None:
        ext = metadata.file_extension or file_path.suffix.lstrip(".") or "tmp"
        filename = (
            f"{sanitize_title(metadata.title)}_"
            f"{document_hash(metadata.document_id)}.{ext}"
        )
        self.root.mkdir(parents=True, exist_ok=True)

        with self._lock:
            index = self._load_index()
            previous = index["documents"].get(metadata.document_id)
            shutil.copyfile(file_path, self.root / filename)
            if previous and previous["file"] != filename:
                # Title changed: drop the old copy
                (self.root / previous["file"]).unlink(missing_ok=True)
            index["documents"][metadata.document_id] = {
                "title": metadata.title,
                "last_modified": metadata.last_modified.isoformat(),
                "file_extension": metadata.file_extension,
                "file": filename,
            }
            self._save_index(index)
