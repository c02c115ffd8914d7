"""Tests for TempStagingManager and current_staging()."""

import threading

import pytest

from conftest import make_doc
from dok_sync.sync import staging as staging_module
from dok_sync.sync.errors import StagingUnavailableError
from dok_sync.sync.staging import (
    TempStagingManager,
    current_staging,
    document_hash,
    sanitize_title,
)


class TestSanitizeTitle:
    @pytest.mark.parametrize(
        "title, expected",
        [
            ("Plain", "Plain"),
            ('a/b\\c:d*e?f"g<h>i|j', "a_b_c_d_e_f_g_h_i_j"),
            ("  many   spaces\there ", "many spaces here"),
            ("", "document"),
            ("   ", "document"),
        ],
    )
    def test_sanitize(self, title, expected):
        assert sanitize_title(title) == expected

    def test_truncates_long_titles(self):
        assert len(sanitize_title("x" * 500)) == 200

    def test_multibyte_title_capped_by_bytes(self):
        cleaned = sanitize_title("ドキュメント" * 40)
        assert len(cleaned.encode("utf-8")) <= 200
        assert cleaned == "ドキュメント" * 11

    def test_cut_never_splits_a_character(self):
        cleaned = sanitize_title("a" + "é" * 150)
        assert len(cleaned.encode("utf-8")) == 199
        assert cleaned == "a" + "é" * 99


class TestDocumentHash:
    def test_length_and_stability(self):
        h = document_hash("src:a")
        assert len(h) == 8
        assert h == document_hash("src:a")
        assert h != document_hash("src:b")


class TestLifecycle:
    def test_path_requires_open(self):
        with pytest.raises(RuntimeError, match="not open"):
            TempStagingManager().path

    def test_open_is_idempotent(self, tmp_path):
        manager = TempStagingManager(base_dir=tmp_path)
        first = manager.open()
        assert manager.open() == first
        assert first.is_dir()
        assert first.name.startswith("dok-")
        manager.cleanup()
        assert not first.exists()

    def test_cleanup_twice_is_safe(self, tmp_path):
        manager = TempStagingManager(base_dir=tmp_path)
        manager.open()
        manager.cleanup()
        manager.cleanup()
        assert not manager.is_open

    def test_context_manager_binds_current(self, tmp_path):
        with TempStagingManager(base_dir=tmp_path) as manager:
            assert current_staging() is manager
            staged_dir = manager.path
        assert not staged_dir.exists()
        with pytest.raises(StagingUnavailableError):
            current_staging()

    def test_cleanup_on_exception(self, tmp_path):
        with pytest.raises(KeyError):
            with TempStagingManager(base_dir=tmp_path) as manager:
                staged_dir = manager.path
                raise KeyError("boom")
        assert not staged_dir.exists()

    async def test_async_context_manager(self, tmp_path):
        async with TempStagingManager(base_dir=tmp_path) as manager:
            assert current_staging() is manager
        assert list(tmp_path.iterdir()) == []


class TestStagingFiles:
    def test_file_name_from_title_and_hash(self, tmp_path):
        doc = make_doc("dir/a.md", title="Guide: Intro")
        with TempStagingManager(base_dir=tmp_path) as manager:
            path = manager.file_path_for(doc)
            assert path.parent == manager.path
            assert path.name == f"Guide_ Intro_{document_hash(doc.document_id)}.md"

    def test_extension_resolution(self, tmp_path):
        with TempStagingManager(base_dir=tmp_path) as manager:
            with_ext = make_doc("a", file_extension="md")
            without_ext = make_doc("b", file_extension=None)
            assert manager.file_path_for(with_ext, "txt").suffix == ".txt"
            assert manager.file_path_for(with_ext).suffix == ".md"
            assert manager.file_path_for(without_ext).suffix == ".tmp"

    def test_create_temp_file_text_and_bytes(self, tmp_path):
        with TempStagingManager(base_dir=tmp_path) as manager:
            text_path = manager.create_temp_file(make_doc("a"), "héllo")
            bytes_path = manager.create_temp_file(make_doc("b"), b"\x00\x01")
            assert text_path.read_text(encoding="utf-8") == "héllo"
            assert bytes_path.read_bytes() == b"\x00\x01"
            assert manager.created_files == (text_path, bytes_path)
            assert not list(manager.path.glob("*.part"))

    def test_stage_stream_writes_chunks(self, tmp_path):
        with TempStagingManager(base_dir=tmp_path) as manager:
            path = manager.stage_stream(
                make_doc("a"), iter([b"one ", "two ", b"three"])
            )
            assert path.read_bytes() == b"one two three"

    def test_failed_stream_leaves_no_partial_file(self, tmp_path):
        def chunks():
            yield b"partial"
            raise IOError("source interrupted")

        with TempStagingManager(base_dir=tmp_path) as manager:
            with pytest.raises(IOError):
                manager.stage_stream(make_doc("a"), chunks())
            assert list(manager.path.iterdir()) == []
            assert manager.created_files == ()

    def test_long_multibyte_title_can_be_staged(self, tmp_path):
        doc = make_doc("page-1", title="ドキュメント" * 40)
        with TempStagingManager(base_dir=tmp_path) as manager:
            path = manager.create_temp_file(doc, "# 本文")
            assert len(path.name.encode("utf-8")) <= 255
            assert path.read_text(encoding="utf-8") == "# 本文"


class TestAsyncCleanup:
    async def test_directory_removed_in_worker_thread(self, tmp_path, monkeypatch):
        threads = []
        real_cleanup = TempStagingManager.cleanup

        def recording_cleanup(self):
            threads.append(threading.current_thread())
            real_cleanup(self)

        monkeypatch.setattr(TempStagingManager, "cleanup", recording_cleanup)
        async with TempStagingManager(base_dir=tmp_path) as manager:
            staged_dir = manager.path

        assert not staged_dir.exists()
        assert threads and threads[0] is not threading.main_thread()
        with pytest.raises(StagingUnavailableError):
            current_staging()

    async def test_unbinds_when_body_raises(self, tmp_path):
        with pytest.raises(ValueError):
            async with TempStagingManager(base_dir=tmp_path):
                raise ValueError("boom")
        assert staging_module._current.get() is None
        assert list(tmp_path.iterdir()) == []
