"""Local directory source connector.

Lists files below a root directory and stages their content for upload.

* ``source_id`` is the POSIX path relative to the root (it may contain
  ``:``, which the document id format tolerates).
* ``title`` is the file stem, ``last_modified`` the file mtime in UTC.
* Text files are decoded with charset detection and staged as UTF-8;
  other files are streamed to the staging area unchanged.
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path

from dok_sync.file_handler import is_text_file, read_file_with_encoding
from dok_sync.sync.models import DocumentMetadata, parse_document_id
from dok_sync.sync.staging import current_staging

logger = logging.getLogger(__name__)

DEFAULT_INCLUDE = ("*.md", "*.markdown", "*.txt")
_CHUNK_SIZE = 64 * 1024


class FilesystemSource:
    """Source connector over a local directory tree.

    Args:
        root: Directory to list.
        provider_id: Identifier of this source instance.
        include: Glob patterns (matched against the relative path) of
            files to list.
        exclude: Glob patterns of files to ignore; checked first.
    """

    def __init__(
        self,
        root: str | Path,
        provider_id: str = "filesystem",
        include: list[str] | tuple[str, ...] = DEFAULT_INCLUDE,
        exclude: list[str] | tuple[str, ...] = (),
    ) -> None:
        if ":" in provider_id:
            raise ValueError(
                f"provider_id must not contain ':' (got '{provider_id}')"
            )
        self.root = Path(root).expanduser().resolve()
        self.provider_id = provider_id
        self.include = tuple(include)
        self.exclude = tuple(exclude)

    @property
    def name(self) -> str:
        return f"filesystem:{self.provider_id}"

    def _matches(self, rel_path: str) -> bool:
        for pattern in self.exclude:
            if fnmatch.fnmatch(rel_path, pattern):
                return False
        return any(fnmatch.fnmatch(rel_path, p) for p in self.include)

    def _metadata_for(self, path: Path, rel_path: str) -> DocumentMetadata:
        stat = path.stat()
        return DocumentMetadata(
            provider_id=self.provider_id,
            source_id=rel_path,
            title=path.stem,
            last_modified=datetime.fromtimestamp(
                stat.st_mtime, tz=timezone.utc
            ),
            file_extension=path.suffix.lstrip(".") or None,
        )

    def fetch_documents_metadata(self) -> Iterator[DocumentMetadata]:
        """Lazily yield metadata for every matching file, sorted by path."""
        if not self.root.is_dir():
            raise FileNotFoundError(
                f"Source directory not found: {self.root}"
            )
        for path in sorted(self.root.rglob("*")):
            if not path.is_file():
                continue
            rel_path = path.relative_to(self.root).as_posix()
            if self._matches(rel_path):
                yield self._metadata_for(path, rel_path)

    def _resolve(self, source_id: str) -> Path:
        path = (self.root / source_id).resolve()
        if not path.is_relative_to(self.root):
            raise ValueError(
                f"Source path escapes root directory: {source_id}"
            )
        if not path.is_file():
            raise FileNotFoundError(f"Source file not found: {source_id}")
        return path

    def download_document_content(self, document_id: str) -> Path:
        """Stage the file behind *document_id* and return the staged path."""
        provider_id, source_id = parse_document_id(document_id)
        if provider_id != self.provider_id:
            raise ValueError(
                f"Document {document_id} does not belong to "
                f"provider '{self.provider_id}'"
            )
        path = self._resolve(source_id)
        metadata = self._metadata_for(path, source_id)
        staging = current_staging()

        if is_text_file(path):
            content, encoding = read_file_with_encoding(path)
            if encoding != "utf-8":
                logger.debug(
                    "Re-encoding %s from %s to utf-8", source_id, encoding
                )
            return staging.create_temp_file(metadata, content)

        with open(path, "rb") as fh:
            return staging.stage_stream(
                metadata, iter(lambda: fh.read(_CHUNK_SIZE), b"")
            )
