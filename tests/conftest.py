"""
Shared fixtures for reconciliation tests.
Creates isolated source/destination trees and in-memory entries with
controlled timestamps.
"""
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict

import pytest

from treereconcile.core.models import FileEntry


# Fixed timestamp so cheap-path equality is deterministic
FIXED_MTIME = 1_700_000_000


class FakeHasher:
    """
    Stands in for ContentHasher: returns preset digests and records calls.
    Files without a preset digest hash to their path, so they never match.
    """

    def __init__(self, digests: Dict[str, str]):
        self.digests = digests
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def hash_file(self, path, root=None) -> str:
        path = Path(path).as_posix()
        with self._lock:
            self.calls.append(path)
        return self.digests.get(path, f"unique:{path}")


@pytest.fixture
def temp_dir():
    """Creates isolated temporary directory, auto-cleanup after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def source_dir(temp_dir) -> Path:
    path = temp_dir / "source"
    path.mkdir()
    return path


@pytest.fixture
def destination_dir(temp_dir) -> Path:
    path = temp_dir / "destination"
    path.mkdir()
    return path


@pytest.fixture
def write_file() -> Callable[..., Path]:
    """
    Returns a helper that writes a file (creating parents) and pins its
    modification time.
    """
    def _write(root: Path, relative: str, content: bytes = b"", mtime: float = FIXED_MTIME) -> Path:
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        os.utime(path, (mtime, mtime))
        return path

    return _write


@pytest.fixture
def make_entry() -> Callable[..., FileEntry]:
    """Returns a helper building an in-memory FileEntry under a fake root."""
    def _make(
        relative: str,
        root: str = "/src",
        size: int = 10,
        mtime: float = FIXED_MTIME,
        content_hash=None,
    ) -> FileEntry:
        return FileEntry(
            full_path=Path(root) / relative,
            relative_path=relative,
            size=size,
            modified_time=datetime.fromtimestamp(mtime, tz=timezone.utc),
            content_hash=content_hash,
        )

    return _make


@pytest.fixture
def fake_hasher() -> Callable[[Dict[str, str]], FakeHasher]:
    """Returns a factory for FakeHasher with preset digests keyed by full path."""
    return FakeHasher
