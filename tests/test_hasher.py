"""
Unit tests for HasherImpl with XXHashAlgorithmImpl.
Verifies the partial/full/sample tiers return XXH3-128 hex digests and read
only what each tier needs.
"""
import pytest

from conftest import write_file
from duplidex.core.errors import TransientIOError
from duplidex.core.hasher import (
    HasherImpl,
    LARGE_FILE_THRESHOLD,
    PARTIAL_OFFSET,
    SAMPLE_WINDOW,
    SMALL_FILE_THRESHOLD,
    XXHashAlgorithmImpl,
)
from duplidex.core.models import FileRecord


def _record(path, **kwargs) -> FileRecord:
    return FileRecord(path=str(path), size=path.stat().st_size, mtime=path.stat().st_mtime, **kwargs)


class TestHasherImpl:
    """Two-tier hashing over immutable records."""

    def test_same_content_produces_same_full_hash(self, temp_dir):
        """Identical files must produce identical 128-bit hex digests."""
        content = b"test content " * 10000
        f1 = write_file(temp_dir / "one.bin", content)
        f2 = write_file(temp_dir / "two.bin", content)

        hasher = HasherImpl(XXHashAlgorithmImpl())
        hash1 = hasher.compute_full_hash(_record(f1))
        hash2 = hasher.compute_full_hash(_record(f2))

        assert hash1 == hash2
        assert isinstance(hash1, str)
        assert len(hash1) == 32  # XXH3-128 = 16 bytes = 32 hex chars

    def test_different_content_produces_different_hashes(self, temp_dir):
        f1 = write_file(temp_dir / "a.bin", b"A" * 1024)
        f2 = write_file(temp_dir / "b.bin", b"B" * 1024)

        hasher = HasherImpl()

        assert hasher.compute_full_hash(_record(f1)) != hasher.compute_full_hash(_record(f2))

    def test_small_file_partial_equals_full(self, temp_dir):
        """Below the small-file threshold the partial hash already covers the whole file."""
        path = write_file(temp_dir / "small.txt", b"S" * (SMALL_FILE_THRESHOLD - 1))
        hasher = HasherImpl()

        assert hasher.compute_partial_hash(_record(path)) == hasher.compute_full_hash(_record(path))

    def test_small_file_full_hash_reuses_partial_without_io(self, temp_dir):
        """A small record that already carries a partial hash is never re-read."""
        path = write_file(temp_dir / "small.txt", b"S" * 100)
        rec = _record(path, partial_hash="cached")
        path.unlink()

        assert HasherImpl().compute_full_hash(rec) == "cached"

    def test_partial_hash_ignores_bytes_outside_window(self, temp_dir):
        """Files equal in the window but different elsewhere share a partial hash."""
        head = b"H" * (PARTIAL_OFFSET * 3)
        f1 = write_file(temp_dir / "one.bin", head + b"1" * 100)
        f2 = write_file(temp_dir / "two.bin", head + b"2" * 100)
        hasher = HasherImpl()

        assert hasher.compute_partial_hash(_record(f1)) == hasher.compute_partial_hash(_record(f2))
        assert hasher.compute_full_hash(_record(f1)) != hasher.compute_full_hash(_record(f2))

    def test_partial_hash_includes_size(self, temp_dir):
        """Same window content at different sizes must not collide."""
        f1 = write_file(temp_dir / "one.bin", b"W" * (SMALL_FILE_THRESHOLD + 10))
        f2 = write_file(temp_dir / "two.bin", b"W" * (SMALL_FILE_THRESHOLD + 20))
        hasher = HasherImpl()

        assert hasher.compute_partial_hash(_record(f1)) != hasher.compute_partial_hash(_record(f2))

    def test_large_file_uses_sample_hash(self, temp_dir):
        """Above the large-file threshold only start, 60% and end windows are hashed."""
        size = LARGE_FILE_THRESHOLD + SAMPLE_WINDOW
        base = bytearray(b"L" * size)
        f1 = write_file(temp_dir / "one.bin", bytes(base))

        # Change a byte that lies in no sampled window
        base[SAMPLE_WINDOW + 10] = ord("Z")
        f2 = write_file(temp_dir / "two.bin", bytes(base))

        hasher = HasherImpl()
        full1 = hasher.compute_full_hash(_record(f1))

        assert full1 == hasher.compute_sample_hash(_record(f1))
        assert full1 == hasher.compute_full_hash(_record(f2))

    def test_large_file_sample_detects_change_at_end(self, temp_dir):
        size = LARGE_FILE_THRESHOLD + SAMPLE_WINDOW
        f1 = write_file(temp_dir / "one.bin", b"L" * size)
        f2 = write_file(temp_dir / "two.bin", b"L" * (size - 1) + b"!")
        hasher = HasherImpl()

        assert hasher.compute_full_hash(_record(f1)) != hasher.compute_full_hash(_record(f2))

    def test_sample_hash_depends_on_size(self, temp_dir):
        """Zero-filled large files agree on every window but not on length."""
        f1 = write_file(temp_dir / "four.bin", b"\0" * (4 * 1024 * 1024))
        f2 = write_file(temp_dir / "five.bin", b"\0" * (5 * 1024 * 1024))
        hasher = HasherImpl()

        assert hasher.compute_full_hash(_record(f1)) != hasher.compute_full_hash(_record(f2))

    def test_hash_is_a_pure_function_of_the_record(self, temp_dir):
        path = write_file(temp_dir / "f.bin", b"P" * 50000)
        hasher = HasherImpl()

        assert hasher.compute_partial_hash(_record(path)) == hasher.compute_partial_hash(_record(path))
        assert hasher.compute_full_hash(_record(path)) == hasher.compute_full_hash(_record(path))


class TestHasherErrors:
    """Unreadable files surface as TransientIOError so callers can skip them."""

    def test_missing_file_raises_transient_error(self, temp_dir):
        rec = FileRecord(path=str(temp_dir / "gone.bin"), size=100_000, mtime=1.0)

        with pytest.raises(TransientIOError) as exc_info:
            HasherImpl().compute_partial_hash(rec)

        assert exc_info.value.path == rec.path
        assert isinstance(exc_info.value, OSError)

    def test_truncated_file_raises_on_empty_window(self, temp_dir):
        """A file that shrank below the window offset since it was indexed cannot be partially hashed."""
        path = write_file(temp_dir / "shrunk.bin", b"x" * 10)
        rec = FileRecord(path=str(path), size=SMALL_FILE_THRESHOLD * 2, mtime=1.0)

        with pytest.raises(TransientIOError):
            HasherImpl().compute_partial_hash(rec)
