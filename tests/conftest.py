"""
Shared fixtures for duplidex tests.
Creates isolated temporary directories with controlled test files and a fresh index.
"""
import os
import pytest
import tempfile
from pathlib import Path
from typing import Dict
import sys

# Add src/ to sys.path so the 'duplidex' package is importable without installing
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from duplidex.core.index import FileIndex  # noqa: E402
from duplidex.core.models import FileRecord  # noqa: E402


def write_file(path: Path, content: bytes, mtime: float = None) -> Path:
    """Create parent directories, write content and optionally pin the mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


class RecordingCallback:
    """Event callback that remembers every (name, payload) it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, name, payload):
        self.events.append((name, dict(payload)))

    def names(self):
        return [name for name, _ in self.events]

    def payloads(self, name):
        return [payload for event, payload in self.events if event == name]


@pytest.fixture
def temp_dir():
    """Creates isolated temporary directory, auto-cleanup after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def index(temp_dir):
    """Fresh on-disk index living next to (not inside) the scanned tree."""
    db_dir = temp_dir / "_db"
    with FileIndex(str(db_dir / "index.db")) as idx:
        yield idx


@pytest.fixture
def memory_index():
    with FileIndex(":memory:") as idx:
        yield idx


@pytest.fixture
def events():
    return RecordingCallback()


@pytest.fixture
def scan_root(temp_dir) -> Path:
    root = temp_dir / "data"
    root.mkdir()
    return root


@pytest.fixture
def example_tree(scan_root) -> Dict[str, Path]:
    """
    The reference scenario:
    - a/1.txt and b/1.txt: same 10 bytes (one duplicate group, one folder pair)
    - c/2.txt: 20 bytes, unique
    """
    return {
        "a": write_file(scan_root / "a" / "1.txt", b"X" * 10),
        "b": write_file(scan_root / "b" / "1.txt", b"X" * 10),
        "c": write_file(scan_root / "c" / "2.txt", b"Y" * 20),
    }


@pytest.fixture
def test_files(scan_root) -> Dict[str, Path]:
    """
    Creates controlled test files for duplicate detection scenarios:
    - 3 identical small files (one in a subdirectory)
    - 2 identical 100KB files (partial hash reads a window, full hash streams)
    - 2 same-size files that differ only after the partial window
    - 2 unique files
    - 1 empty file (skipped by the crawler)
    """
    files = {}

    content_a = b"A" * 1024
    files["dup1_a"] = write_file(scan_root / "dup1_a.txt", content_a)
    files["dup1_b"] = write_file(scan_root / "dup1_b.txt", content_a)
    files["sub_dup"] = write_file(scan_root / "subdir" / "dup_in_subdir.txt", content_a)

    content_b = bytes(range(256)) * 400  # 102400 bytes
    files["dup2_a"] = write_file(scan_root / "dup2_a.bin", content_b)
    files["dup2_b"] = write_file(scan_root / "dup2_b.bin", content_b)

    head = b"H" * 40 * 1024
    files["tail1"] = write_file(scan_root / "tail1.bin", head + b"1" * 1024)
    files["tail2"] = write_file(scan_root / "tail2.bin", head + b"2" * 1024)

    files["unique1"] = write_file(scan_root / "unique1.txt", b"C" * 1500)
    files["unique2"] = write_file(scan_root / "unique2.txt", b"D" * 2500)

    files["empty"] = write_file(scan_root / "empty.txt", b"")
    return files


def record(path: str, size: int = 10, mtime: float = 1.0) -> FileRecord:
    return FileRecord(path=path, size=size, mtime=mtime)
