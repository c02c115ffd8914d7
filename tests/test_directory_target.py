"""Tests for the local directory target connector."""

import json

import pytest

from conftest import make_doc
from dok_sync.connectors.directory import INDEX_FILENAME, DirectoryTarget
from dok_sync.sync.staging import document_hash


@pytest.fixture
def staged(tmp_path):
    path = tmp_path / "staged.md"
    path.write_text("# Hello\n", encoding="utf-8")
    return path


@pytest.fixture
def kb(tmp_path):
    return DirectoryTarget(tmp_path / "kb", name="kb")


class TestDirectoryTarget:
    def test_empty_store(self, kb):
        assert kb.fetch_documents_metadata() == []

    def test_default_name(self, tmp_path):
        assert DirectoryTarget(tmp_path / "store").name == "directory:store"

    def test_create_then_list(self, kb, staged):
        doc = make_doc("guide.md", title="Guide", minutes=3)
        kb.create_document_from_file(doc, staged)

        assert kb.fetch_documents_metadata() == [doc]
        stored = kb.root / f"Guide_{document_hash(doc.document_id)}.md"
        assert stored.read_text(encoding="utf-8") == "# Hello\n"

        index = json.loads((kb.root / INDEX_FILENAME).read_text())
        assert index["version"] == 1
        assert index["documents"]["src:guide.md"]["file"] == stored.name

    def test_long_multibyte_title(self, kb, staged):
        doc = make_doc("page-1", title="ドキュメント" * 40)
        kb.create_document_from_file(doc, staged)

        index = json.loads((kb.root / INDEX_FILENAME).read_text(encoding="utf-8"))
        entry = index["documents"]["src:page-1"]
        assert entry["title"] == "ドキュメント" * 40
        assert len(entry["file"].encode("utf-8")) <= 255
        assert (kb.root / entry["file"]).read_text(encoding="utf-8") == "# Hello\n"

    def test_source_id_with_delimiter(self, kb, staged):
        doc = make_doc("c:/notes/a.md", title="a")
        kb.create_document_from_file(doc, str(staged))
        assert kb.fetch_documents_metadata()[0].source_id == "c:/notes/a.md"

    def test_update_replaces_content_and_timestamp(self, kb, staged, tmp_path):
        kb.create_document_from_file(make_doc("a", title="A"), staged)
        newer_file = tmp_path / "newer.md"
        newer_file.write_text("v2")
        newer = make_doc("a", title="A", minutes=10)

        kb.update_document_from_file(newer, newer_file)

        assert kb.fetch_documents_metadata() == [newer]
        files = [p for p in kb.root.iterdir() if p.name != INDEX_FILENAME]
        assert len(files) == 1
        assert files[0].read_text() == "v2"

    def test_update_after_rename_drops_old_file(self, kb, staged):
        kb.create_document_from_file(make_doc("a", title="Old"), staged)
        kb.update_document_from_file(make_doc("a", title="New", minutes=1), staged)
        names = sorted(p.name for p in kb.root.iterdir())
        assert names == [INDEX_FILENAME, f"New_{document_hash('src:a')}.md"]

    def test_update_unknown_raises(self, kb, staged):
        with pytest.raises(KeyError, match="Document not found"):
            kb.update_document_from_file(make_doc("ghost"), staged)

    def test_delete(self, kb, staged):
        kb.create_document_from_file(make_doc("a"), staged)
        kb.delete_document("src:a")
        assert kb.fetch_documents_metadata() == []
        assert [p.name for p in kb.root.iterdir()] == [INDEX_FILENAME]

    def test_delete_missing_is_warning(self, kb, caplog):
        kb.delete_document("src:ghost")
        assert "skipping deletion" in caplog.text
