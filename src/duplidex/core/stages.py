"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/stages.py
The two hashing passes of the duplicate-detection pipeline.

CLASS HIERARCHY
---------------
HashStageBase    : Shared worker-pool driving, result buffering and progress reporting
PartialHashStage : Size-collision candidates -> partial hash
FullHashStage    : Partial-hash-collision candidates -> full hash

STAGE CONTRACTS
---------------
Each stage implements a consistent interface that:
  • Queries its own candidates from the index (`get_candidates`)
  • Hashes them on a bounded worker pool (`process`)
  • Buffers results and flushes them in batches, always flushing before it returns,
    so completed work survives cancellation
  • Reports progress through the event callback at a bounded rate
  • Respects cancellation via the token before every claimed candidate

Because candidates are re-queried from the index on every run, a crashed or
cancelled pass resumes exactly where it stopped.
"""

import logging
import threading
from typing import List, Optional

from duplidex.core.cancellation import CancellationToken
from duplidex.core.events import (
    EventCallback,
    HASHING_PROGRESS,
    PROCESSING_PROGRESS,
    ProgressThrottle,
    emit,
)
from duplidex.core.hasher import HasherImpl
from duplidex.core.interfaces import Hasher, HashStage
from duplidex.core.models import FileRecord, HashResult
from duplidex.core.pool import process_queue

logger = logging.getLogger(__name__)


class HashStageBase(HashStage):
    """
    Base class for both hashing passes.
    Subclasses choose the candidates, the hash tier and the index column.
    """

    event_name: str = ""

    def __init__(
        self,
        index,
        hasher: Optional[Hasher] = None,
        concurrency: int = 2,
        flush_size: int = 100,
        progress_interval: float = 0.2,
    ):
        self.index = index
        self.hasher = hasher or HasherImpl()
        self.concurrency = concurrency
        self.flush_size = flush_size
        self.progress_interval = progress_interval
        self.last_failed = 0

    def get_stage_name(self) -> str:
        raise NotImplementedError

    def get_candidates(self) -> List[FileRecord]:
        raise NotImplementedError

    def _compute(self, record: FileRecord) -> str:
        raise NotImplementedError

    def _persist(self, results: List[HashResult]) -> None:
        raise NotImplementedError

    def process(
        self,
        candidates: List[FileRecord],
        token: Optional[CancellationToken] = None,
        event_callback: Optional[EventCallback] = None
    ) -> int:
        """
        Hashes every candidate and writes results back in batches.
        Returns the number of candidates hashed successfully.
        """
        self.last_failed = 0
        if token is not None and token.cancelled:
            return 0

        total = len(candidates)
        if total == 0:
            return 0

        buffer: List[HashResult] = []
        buffer_lock = threading.Lock()

        def flush(force: bool = False) -> None:
            with buffer_lock:
                if not buffer or (not force and len(buffer) < self.flush_size):
                    return
                batch = buffer[:]
                buffer.clear()
            self._persist(batch)

        def on_result(record: FileRecord, value: str) -> None:
            with buffer_lock:
                buffer.append(HashResult(
                    file_id=record.id, size=record.size, mtime=record.mtime, value=value
                ))
            flush()

        throttle = ProgressThrottle(self.progress_interval)

        def on_progress(processed: int, total_items: int) -> None:
            if processed == total_items or throttle.ready():
                emit(event_callback, self.event_name, {"current": processed, "total": total_items})

        emit(event_callback, self.event_name, {"current": 0, "total": total})
        logger.info(f"{self.get_stage_name()}: {total} candidate(s)")

        try:
            processed, failed = process_queue(
                candidates,
                self.concurrency,
                self._compute,
                on_result,
                on_progress=on_progress,
                token=token,
            )
        finally:
            flush(force=True)

        self.last_failed = failed
        if failed:
            logger.warning(f"{self.get_stage_name()}: skipped {failed} unreadable file(s)")
        return processed - failed


class PartialHashStage(HashStageBase):
    event_name = PROCESSING_PROGRESS

    def get_stage_name(self) -> str:
        return "Partial Hash"

    def get_candidates(self) -> List[FileRecord]:
        return self.index.candidates_by_size_collision()

    def _compute(self, record: FileRecord) -> str:
        return self.hasher.compute_partial_hash(record)

    def _persist(self, results: List[HashResult]) -> None:
        self.index.set_partial_hashes(results)


class FullHashStage(HashStageBase):
    event_name = HASHING_PROGRESS

    def get_stage_name(self) -> str:
        return "Full Hash"

    def get_candidates(self) -> List[FileRecord]:
        return self.index.candidates_by_partial_hash_collision()

    def _compute(self, record: FileRecord) -> str:
        return self.hasher.compute_full_hash(record)

    def _persist(self, results: List[HashResult]) -> None:
        self.index.set_full_hashes(results)
