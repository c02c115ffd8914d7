"""Shared pytest fixtures for dok-sync tests."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from dok_sync.sync.models import DocumentMetadata, parse_document_id
from dok_sync.sync.staging import current_staging

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_doc(
    source_id: str,
    *,
    provider_id: str = "src",
    title: str | None = None,
    minutes: int = 0,
    file_extension: str | None = "md",
) -> DocumentMetadata:
    """Build DocumentMetadata modified *minutes* after BASE_TIME."""
    return DocumentMetadata(
        provider_id=provider_id,
        source_id=source_id,
        title=title if title is not None else source_id,
        last_modified=BASE_TIME + timedelta(minutes=minutes),
        file_extension=file_extension,
    )


class FakeSource:
    """In-memory source connector that stages ``content:<source_id>``."""

    def __init__(self, docs=(), provider_id="src", fail_on=()):
        self.provider_id = provider_id
        self.docs = list(docs)
        self.fail_on = set(fail_on)
        self.downloads: list[str] = []

    def fetch_documents_metadata(self):
        return list(self.docs)

    def download_document_content(self, document_id: str) -> Path:
        self.downloads.append(document_id)
        if document_id in self.fail_on:
            raise RuntimeError(f"download failed: {document_id}")
        _, source_id = parse_document_id(document_id)
        doc = next(d for d in self.docs if d.document_id == document_id)
        return current_staging().create_temp_file(
            doc, f"content:{source_id}"
        )


class FakeTarget:
    """In-memory target connector recording every call.

    ``fail_on`` holds document ids whose mutation raises.
    """

    def __init__(self, docs=(), name="fake-target", fail_on=()):
        self.name = name
        self.docs = {d.document_id: d for d in docs}
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, str]] = []
        self.contents: dict[str, str] = {}
        self.staged_paths: list[Path] = []

    def fetch_documents_metadata(self):
        return list(self.docs.values())

    def _check(self, document_id: str) -> None:
        if document_id in self.fail_on:
            raise RuntimeError(f"target rejected {document_id}")

    def create_document_from_file(self, metadata, file_path):
        self.calls.append(("create", metadata.document_id))
        self._check(metadata.document_id)
        self.staged_paths.append(Path(file_path))
        self.contents[metadata.document_id] = Path(file_path).read_text()
        self.docs[metadata.document_id] = metadata

    def update_document_from_file(self, metadata, file_path):
        self.calls.append(("update", metadata.document_id))
        self._check(metadata.document_id)
        self.staged_paths.append(Path(file_path))
        self.contents[metadata.document_id] = Path(file_path).read_text()
        self.docs[metadata.document_id] = metadata

    def delete_document(self, document_id):
        self.calls.append(("delete", document_id))
        self._check(document_id)
        self.docs.pop(document_id, None)


class RecordingLogger:
    """SyncLogger collecting ``(level, message, meta)`` tuples."""

    def __init__(self):
        self.records: list[tuple[str, str, dict | None]] = []

    def info(self, message, meta=None):
        self.records.append(("info", message, meta))

    def warn(self, message, meta=None):
        self.records.append(("warn", message, meta))

    def error(self, message, meta=None):
        self.records.append(("error", message, meta))

    def debug(self, message, meta=None):
        self.records.append(("debug", message, meta))

    def messages(self, level=None):
        return [m for lvl, m, _ in self.records if level is None or lvl == level]


@pytest.fixture
def recording_logger():
    return RecordingLogger()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove DOK_* variables that would leak into config resolution."""
    for key in (
        "DOK_CONFIG",
        "DOK_DRY_RUN",
        "DOK_BATCH_SIZE",
        "DOK_BATCH_DELAY_MS",
        "DOK_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch
