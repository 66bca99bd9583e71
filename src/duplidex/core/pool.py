"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/pool.py
Bounded worker pool over a fixed list of work items.

Workers claim the next index from a shared, lock-guarded counter, so each item
is processed exactly once no matter how many workers run. Cancellation is
checked before every claim.
"""
import concurrent.futures
import logging
import threading
import time
from typing import Callable, List, Optional, Tuple, TypeVar

from duplidex.core.cancellation import CancellationToken
from duplidex.core.errors import TransientIOError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

YIELD_EVERY = 5


class _Cursor:
    """Atomically claimed position in the work list."""

    def __init__(self, total: int):
        self.total = total
        self._next = 0
        self._processed = 0
        self._failed = 0
        self._lock = threading.Lock()

    def claim(self) -> Optional[int]:
        with self._lock:
            if self._next >= self.total:
                return None
            index = self._next
            self._next += 1
            return index

    def done(self, failed: bool) -> int:
        with self._lock:
            self._processed += 1
            if failed:
                self._failed += 1
            return self._processed

    def abort(self) -> None:
        """Stop handing out items; workers finish the one they hold."""
        with self._lock:
            self._next = self.total

    @property
    def counts(self) -> Tuple[int, int]:
        with self._lock:
            return self._processed, self._failed


def process_queue(
    items: List[T],
    concurrency: int,
    task_fn: Callable[[T], R],
    on_result: Callable[[T, R], None],
    on_progress: Optional[Callable[[int, int], None]] = None,
    token: Optional[CancellationToken] = None,
) -> Tuple[int, int]:
    """
    Run `task_fn` over `items` with at most `concurrency` threads.

    `on_result` is called from worker threads and must be thread-safe.
    TransientIOError from `task_fn` skips the item; any other exception is
    logged with its traceback and also skips the item. An exception from
    `on_result` is not an item failure: no further items are claimed and it
    propagates to the caller.

    Returns:
        (processed, failed) counts. With cancellation, processed < len(items).
    """
    total = len(items)
    if total == 0:
        return 0, 0

    cursor = _Cursor(total)

    def worker() -> None:
        while True:
            if token is not None and token.cancelled:
                return
            index = cursor.claim()
            if index is None:
                return
            item = items[index]
            failed = False
            try:
                result = task_fn(item)
            except TransientIOError as e:
                failed = True
                logger.debug(f"Skipping unreadable item: {e}")
            except Exception:
                failed = True
                logger.exception(f"Unexpected error while processing {item!r}")
            if not failed:
                try:
                    on_result(item, result)
                except BaseException:
                    cursor.abort()
                    raise
            processed = cursor.done(failed)
            if on_progress:
                on_progress(processed, total)
            if processed % YIELD_EVERY == 0:
                time.sleep(0)

    workers = max(1, min(concurrency, total))
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(worker) for _ in range(workers)]
        for future in futures:
            future.result()

    return cursor.counts
