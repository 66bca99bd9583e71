"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

hasher.py
Implements the two hash tiers over immutable FileRecords with pluggable hash
algorithms. Nothing is cached here: the persistent index is the only cache.

Partial hash
    Files below SMALL_FILE_THRESHOLD: identical to the full hash.
    Larger files: PARTIAL_WINDOW bytes at PARTIAL_OFFSET, hashed together with
    the file size so same-prefix files of different length never collide.

Full hash
    Files up to LARGE_FILE_THRESHOLD are streamed completely.
    Larger files get a sample hash: SAMPLE_WINDOW bytes at the start, at 60%
    of the size and at the end. This is a heuristic, not an exhaustive
    comparison: two different large files that agree on all three windows will
    be reported as duplicates. The size is mixed in so files of different
    length never share a sample hash.
"""

import logging

import xxhash

from duplidex.core.errors import TransientIOError
from duplidex.core.interfaces import Hasher, HashAlgorithm, HashState
from duplidex.core.models import FileRecord

logger = logging.getLogger(__name__)

PARTIAL_OFFSET = 16 * 1024
PARTIAL_WINDOW = 16 * 1024
SMALL_FILE_THRESHOLD = PARTIAL_OFFSET + PARTIAL_WINDOW  # 32 KiB
LARGE_FILE_THRESHOLD = 3 * 1024 * 1024
SAMPLE_WINDOW = 1024 * 1024
SAMPLE_MIDDLE_RATIO = 0.60
READ_BUFFER = 64 * 1024


# Use the same way to implement and use any other hashing algorithm
class XXHashAlgorithmImpl(HashAlgorithm):
    def new(self) -> HashState:
        return xxhash.xxh3_128()


class HasherImpl(Hasher):
    """
    A hasher implementation that supports any algorithm via the HashAlgorithm interface.
    Every method is a pure function of the record's path, size and stored hashes.
    """

    def __init__(self, algorithm: HashAlgorithm = None):
        self.algorithm = algorithm or XXHashAlgorithmImpl()

    def compute_partial_hash(self, file: FileRecord) -> str:
        """Computes the cheap first-tier hash used to split same-size files."""
        if file.size < SMALL_FILE_THRESHOLD:
            return self._stream_hash(file)
        state = self.algorithm.new()
        state.update(self._read_window(file, PARTIAL_OFFSET, PARTIAL_WINDOW))
        state.update(str(file.size).encode("ascii"))
        return state.hexdigest()

    def compute_full_hash(self, file: FileRecord) -> str:
        """Computes the second-tier hash that decides duplicates."""
        if file.size < SMALL_FILE_THRESHOLD and file.partial_hash is not None:
            # Small files were hashed completely in the partial tier already.
            return file.partial_hash
        if file.size > LARGE_FILE_THRESHOLD:
            return self.compute_sample_hash(file)
        return self._stream_hash(file)

    def compute_sample_hash(self, file: FileRecord) -> str:
        """Hashes start, 60% and end windows of a large file, in that order, then its size."""
        middle = int(file.size * SAMPLE_MIDDLE_RATIO)
        end = max(0, file.size - SAMPLE_WINDOW)
        state = self.algorithm.new()
        try:
            with open(file.path, "rb") as f:
                for offset in (0, middle, end):
                    f.seek(offset)
                    state.update(f.read(SAMPLE_WINDOW))
        except OSError as e:
            raise TransientIOError(file.path, str(e)) from e
        state.update(str(file.size).encode("ascii"))
        return state.hexdigest()

    def _stream_hash(self, file: FileRecord) -> str:
        state = self.algorithm.new()
        try:
            with open(file.path, "rb") as f:
                while True:
                    chunk = f.read(READ_BUFFER)
                    if not chunk:
                        break
                    state.update(chunk)
        except OSError as e:
            raise TransientIOError(file.path, str(e)) from e
        return state.hexdigest()

    @staticmethod
    def _read_window(file: FileRecord, offset: int, size: int) -> bytes:
        """Reads and returns a chunk of data from the specified offset in the file."""
        try:
            with open(file.path, "rb") as f:
                f.seek(offset)
                data = f.read(size)
        except OSError as e:
            raise TransientIOError(file.path, str(e)) from e
        if not data:
            raise TransientIOError(file.path, f"empty read at offset {offset}")
        return data
