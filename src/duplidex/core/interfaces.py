"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

interfaces.py

Defines core interfaces (Protocols) used throughout the duplicate-detection pipeline.
These protocols enforce structural typing using Python's `typing.Protocol` to ensure
consistency across modules while maintaining flexibility and modularity.

Key Components:
---------------
- HashAlgorithm / HashState: pluggable incremental hash functions (xxHash by default).
- Hasher: computes partial and full content hashes for indexed files.
- FileCrawler: walks roots and converges the persistent index to the filesystem.
- HashStage: one hashing pass over a list of candidates.
"""

from typing import Protocol, List, Optional

from duplidex.core.cancellation import CancellationToken
from duplidex.core.events import EventCallback
from duplidex.core.models import FileRecord, ScanParams, ScanReport


# ===== Interfaces =====

class HashState(Protocol):
    def update(self, data: bytes) -> None: ...
    def hexdigest(self) -> str: ...


class HashAlgorithm(Protocol):
    """
    Interface for generic incremental hash algorithms.

    Allows plugging in different hashing functions like xxHash or SHA-256
    without affecting the rest of the pipeline.
    """

    def new(self) -> HashState:
        """Returns a fresh incremental hash state."""
        ...


class Hasher(Protocol):
    """Interface for computing the two hash tiers of a file."""
    def compute_partial_hash(self, file: FileRecord) -> str: ...
    def compute_full_hash(self, file: FileRecord) -> str: ...


class FileCrawler(Protocol):
    """
    Interface for walking roots and syncing the index with what is on disk.
    """
    def crawl(
        self,
        params: ScanParams,
        token: Optional[CancellationToken] = None,
        event_callback: Optional[EventCallback] = None
    ) -> ScanReport:
        """
        Walk every root of `params`, upsert new/changed files, prune vanished ones.

        Args:
            params: Roots, category filter and refresh flags.
            token: Cancellation token checked before each directory and file.
            event_callback: Receives `scan-progress` events.

        Returns:
            ScanReport with counters and the cancellation flag.
        """
        ...


# =============================
# Stage Interfaces
# =============================

class HashStage(Protocol):
    """
    One hashing pass: query candidates, hash them, persist the results.
    """

    # Candidates skipped as unreadable by the last call to process()
    last_failed: int

    def get_stage_name(self) -> str:
        """Return the name of this stage (used in logging and stats)."""
        ...

    def get_candidates(self) -> List[FileRecord]:
        """Query the index for records this stage has to hash."""
        ...

    def process(
        self,
        candidates: List[FileRecord],
        token: Optional[CancellationToken] = None,
        event_callback: Optional[EventCallback] = None
    ) -> int:
        """
        Hash every candidate and write results back to the index.

        Returns:
            Number of candidates hashed successfully.
        """
        ...
