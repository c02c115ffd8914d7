"""Temporary content staging for one reconciliation run.

Source connectors materialise downloaded content as plain files inside
the staging directory owned by the running reconciler, and hand the file
path to the target connector.  Content never travels through the
reconciler in memory.

Key design choices:

* **One directory per run** -- ``open()`` creates a private directory via
  ``tempfile.mkdtemp``; ``cleanup()`` removes it recursively.  Both the
  sync and async context-manager forms always clean up.
* **Hashed names** -- each file is named
  ``<sanitized title>_<sha256(document id)[:8]>.<ext>`` so concurrent
  operations never collide.
* **Atomic writes** -- content is written to a temp file in the same
  directory then moved into place with ``os.replace()``.
* **Run-scoped lookup** -- the reconciler binds its manager to a context
  variable; connectors reach it through ``current_staging()``.
"""

from __future__ import annotations

import contextvars
import hashlib
import logging
import os
import re
import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path

from dok_sync.core.async_utils import run_sync

from .errors import StagingUnavailableError
from .models import DocumentMetadata

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[/\\:*?"<>|]')
_WHITESPACE = re.compile(r"\s+")
# Leaves room for "_<hash>.<ext>" within the 255-byte file name limit
_MAX_TITLE_BYTES = 200

_current: contextvars.ContextVar[TempStagingManager | None] = (
    contextvars.ContextVar("dok_sync_staging", default=None)
)


def current_staging() -> TempStagingManager:
    """Return the staging manager of the reconciliation run in progress.

    Raises:
        StagingUnavailableError: If called outside of a run.
    """
    staging = _current.get()
    if staging is None:
        raise StagingUnavailableError(
            "No staging area is active; content can only be staged "
            "during a reconciliation run"
        )
    return staging


def sanitize_title(title: str) -> str:
    """Make *title* safe for use as a file name stem.

    The result is at most ``_MAX_TITLE_BYTES`` long once UTF-8 encoded,
    cut on a character boundary.
    """
    cleaned = _UNSAFE_CHARS.sub("_", title)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    encoded = cleaned.encode("utf-8")
    if len(encoded) > _MAX_TITLE_BYTES:
        cleaned = (
            encoded[:_MAX_TITLE_BYTES].decode("utf-8", errors="ignore").rstrip()
        )
    return cleaned or "document"


def document_hash(document_id: str, length: int = 8) -> str:
    """Short SHA-256 hex digest of *document_id*."""
    return hashlib.sha256(document_id.encode("utf-8")).hexdigest()[:length]


class TempStagingManager:
    """Own a scratch directory and the staged files inside it.

    Args:
        prefix: Prefix of the temporary directory name.
        base_dir: Parent directory; defaults to the system temp dir.
    """

    def __init__(
        self, prefix: str = "dok-", base_dir: str | Path | None = None
    ) -> None:
        self._prefix = prefix
        self._base_dir = str(base_dir) if base_dir is not None else None
        self._path: Path | None = None
        self._created: list[Path] = []
        self._token: contextvars.Token | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> Path:
        """Create the staging directory (idempotent)."""
        if self._path is None:
            self._path = Path(
                tempfile.mkdtemp(prefix=self._prefix, dir=self._base_dir)
            )
            logger.debug("Created staging directory %s", self._path)
        return self._path

    def cleanup(self) -> None:
        """Remove the staging directory and everything in it."""
        if self._path is None:
            return
        shutil.rmtree(self._path, ignore_errors=True)
        logger.debug("Removed staging directory %s", self._path)
        self._path = None
        self._created.clear()

    @property
    def path(self) -> Path:
        if self._path is None:
            raise RuntimeError("Staging directory is not open")
        return self._path

    @property
    def is_open(self) -> bool:
        return self._path is not None

    @property
    def created_files(self) -> tuple[Path, ...]:
        return tuple(self._created)

    def activate(self) -> None:
        """Open the directory and bind it as ``current_staging()``."""
        self.open()
        self._token = _current.set(self)

    def _unbind(self) -> None:
        if self._token is not None:
            _current.reset(self._token)
            self._token = None

    def release(self) -> None:
        """Unbind from ``current_staging()`` and remove the directory."""
        try:
            self._unbind()
        finally:
            self.cleanup()

    def __enter__(self) -> TempStagingManager:
        self.activate()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    async def __aenter__(self) -> TempStagingManager:
        await run_sync(self.open)
        self._token = _current.set(self)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        # Reset in this context; worker threads only see a copy of it
        try:
            self._unbind()
        finally:
            await run_sync(self.cleanup)

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def file_path_for(
        self, metadata: DocumentMetadata, extension: str | None = None
    ) -> Path:
        """Return the staging path for *metadata* (file not created)."""
        ext = (extension or metadata.file_extension or "tmp").lstrip(".")
        name = (
            f"{sanitize_title(metadata.title)}_"
            f"{document_hash(metadata.document_id)}.{ext}"
        )
        return self.path / name

    def create_temp_file(
        self,
        metadata: DocumentMetadata,
        content: str | bytes,
        extension: str | None = None,
    ) -> Path:
        """Write in-memory *content* to a staged file.

        Strings are encoded as UTF-8.

        Returns:
            Path of the staged file.
        """
        data = content.encode("utf-8") if isinstance(content, str) else content
        return self.stage_stream(metadata, [data], extension)

    def stage_stream(
        self,
        metadata: DocumentMetadata,
        chunks: Iterable[bytes | str],
        extension: str | None = None,
    ) -> Path:
        """Write streamed *chunks* to a staged file without buffering them.

        Returns:
            Path of the staged file.
        """
        target = self.file_path_for(metadata, extension)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path), suffix=".part")
        try:
            with os.fdopen(fd, "wb") as fh:
                for chunk in chunks:
                    fh.write(
                        chunk.encode("utf-8")
                        if isinstance(chunk, str)
                        else chunk
                    )
            os.replace(tmp_path, target)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

        self._created.append(target)
        logger.debug(
            "Staged %s as %s", metadata.document_id, target.name
        )
        return target
