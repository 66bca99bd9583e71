"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

deduplicator.py
Duplicate grouping engine: drives the hashing stages in exactly two ordered
passes and reads the resulting groups back from the index.

    1. size collisions          -> partial hash   (processing-progress)
    2. partial-hash collisions  -> full hash      (hashing-progress)
    3. duplicate_groups()       -> read straight from the index

Running it twice without filesystem changes hashes nothing the second time:
every candidate query filters on a NULL hash column.
"""
import logging
import time
from typing import List, Optional, Tuple

from duplidex.core.cancellation import CancellationToken
from duplidex.core.events import EventCallback, PROCESSING_COMPLETE, emit
from duplidex.core.hasher import HasherImpl
from duplidex.core.interfaces import Hasher, HashStage
from duplidex.core.models import DuplicateGroup, DuplicateQuery, ProcessingStats
from duplidex.core.stages import FullHashStage, PartialHashStage

logger = logging.getLogger(__name__)


# =============================
# Main Deduplicator Class
# =============================
class DeduplicatorImpl:
    """
    Implements the two-pass hashing pipeline over the persistent index.
    Collects per-stage statistics.
    """

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

    def find_duplicates(
        self,
        token: Optional[CancellationToken] = None,
        event_callback: Optional[EventCallback] = None
    ) -> ProcessingStats:
        """
        Hash every pending candidate of both tiers.

        Args:
            token: Cancellation token; checked before each pass and each candidate.
            event_callback: Receives processing/hashing progress and processing-complete.

        Returns:
            ProcessingStats. `processing-complete` is only emitted when not cancelled.
        """
        stats = ProcessingStats()
        total_start_time = time.time()

        for stage in self._build_pipeline():
            if token is not None and token.cancelled:
                break
            start_time = time.time()
            candidates = stage.get_candidates()
            hashed = stage.process(candidates, token=token, event_callback=event_callback)
            stats.update_stage(
                stage_name=stage.get_stage_name(),
                candidates=len(candidates),
                hashed=hashed,
                failed=stage.last_failed,
                duration=time.time() - start_time,
            )

        stats.total_time = time.time() - total_start_time

        if token is not None and token.cancelled:
            logger.warning("Processing cancelled; completed hashes were kept")
        else:
            logger.info(f"Processing complete in {stats.total_time:.2f}s")
            emit(event_callback, PROCESSING_COMPLETE)
        return stats

    def duplicate_groups(self, query: Optional[DuplicateQuery] = None) -> List[DuplicateGroup]:
        return self.index.duplicate_groups(query)

    def _build_pipeline(self) -> Tuple[HashStage, HashStage]:
        """Partial pass strictly before full pass."""
        options = dict(
            hasher=self.hasher,
            concurrency=self.concurrency,
            flush_size=self.flush_size,
            progress_interval=self.progress_interval,
        )
        return PartialHashStage(self.index, **options), FullHashStage(self.index, **options)
