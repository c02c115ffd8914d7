"""File handler module: encoding-aware reads and atomic writes.

Provides the file I/O infrastructure shared by the local connectors.
All functions are synchronous; connectors run them in worker threads.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from charset_normalizer import from_bytes

# =============================================================================
# Read
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Defaults to UTF-8 for empty files or when detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # Normalize ascii to utf-8 (ascii is a strict subset of utf-8)
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content, encoding)


def read_json(path: Path, default: Any = None) -> Any:
    """Load JSON from *path*, returning *default* if the file is missing."""
    if not path.exists():
        return default
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


# =============================================================================
# Atomic write
# =============================================================================


def write_bytes_atomic(path: Path, data: bytes) -> int:
    """Write *data* to *path* atomically, creating parent directories.

    Writes to a temporary file in the same directory then atomically
    replaces the target, so readers never see partial data.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up temp file on any failure.
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return len(data)


def write_json_atomic(path: Path, data: Any) -> None:
    """Serialise *data* as indented JSON and write it atomically."""
    payload = json.dumps(data, indent=2, ensure_ascii=False)
    write_bytes_atomic(path, payload.encode("utf-8"))


# =============================================================================
# Format detection
# =============================================================================


TEXT_EXTENSIONS: frozenset[str] = frozenset(
    {".md", ".markdown", ".txt", ".rst", ".html", ".htm", ".csv", ".json"}
)


def is_text_file(path: Path) -> bool:
    """Whether *path* has an extension handled as text."""
    return path.suffix.lower() in TEXT_EXTENSIONS
