"""Tests for file_handler module: encoding-aware reads, atomic writes, format detection."""

import json
from pathlib import Path

import pytest

from dok_sync.file_handler import (
    is_text_file,
    read_file_with_encoding,
    read_json,
    write_bytes_atomic,
    write_json_atomic,
)

# =============================================================================
# read_file_with_encoding
# =============================================================================


class TestReadFileWithEncoding:
    """Tests for read_file_with_encoding(path)."""

    def test_utf8_file(self, tmp_path):
        f = tmp_path / "utf8.md"
        f.write_text("Héllo wörld, plain UTF-8 content here.", encoding="utf-8")
        content, encoding = read_file_with_encoding(f)
        assert content == "Héllo wörld, plain UTF-8 content here."

    def test_ascii_normalised_to_utf8(self, tmp_path):
        f = tmp_path / "ascii.txt"
        f.write_bytes(b"just ascii text")
        content, encoding = read_file_with_encoding(f)
        assert content == "just ascii text"
        assert encoding == "utf-8"

    def test_empty_file(self, tmp_path):
        f = tmp_path / "empty.md"
        f.write_bytes(b"")
        assert read_file_with_encoding(f) == ("", "utf-8")


# =============================================================================
# JSON helpers / atomic writes
# =============================================================================


class TestAtomicWrites:
    def test_write_bytes_creates_parents(self, tmp_path):
        target = tmp_path / "nested" / "dir" / "out.bin"
        assert write_bytes_atomic(target, b"abc") == 3
        assert target.read_bytes() == b"abc"

    def test_write_bytes_replaces(self, tmp_path):
        target = tmp_path / "out.bin"
        target.write_bytes(b"old")
        write_bytes_atomic(target, b"new")
        assert target.read_bytes() == b"new"
        assert [p.name for p in tmp_path.iterdir()] == ["out.bin"]

    def test_json_round_trip(self, tmp_path):
        target = tmp_path / "index.json"
        write_json_atomic(target, {"title": "Grüße"})
        assert json.loads(target.read_text(encoding="utf-8")) == {"title": "Grüße"}
        assert read_json(target) == {"title": "Grüße"}

    def test_read_json_missing_returns_default(self, tmp_path):
        assert read_json(tmp_path / "missing.json") is None
        assert read_json(tmp_path / "missing.json", default={}) == {}


# =============================================================================
# is_text_file
# =============================================================================


@pytest.mark.parametrize(
    "name, expected",
    [
        ("a.md", True),
        ("a.MARKDOWN", True),
        ("a.txt", True),
        ("a.pdf", False),
        ("noext", False),
    ],
)
def test_is_text_file(name, expected):
    assert is_text_file(Path(name)) is expected
