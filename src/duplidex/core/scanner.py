"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/scanner.py
Walks the selected roots and converges the persistent index to what is on disk.
Features:
- Queue-based traversal drained by a bounded pool of threads (no recursion)
- Excluded prefixes and system directories are pruned before descent
- Only new or changed files (size/mtime differ from the index) are written
- Upserts are batched and flushed transactionally, also on cancellation
- Files that vanished under a scanned root are removed from the index
"""

import logging
import os
import queue
import threading
import time
from typing import Dict, List, Optional, Set, Tuple

from duplidex.core.cancellation import CancellationToken
from duplidex.core.events import (
    EventCallback,
    SCAN_CANCELLED,
    SCAN_COMPLETE,
    SCAN_PROGRESS,
    ProgressThrottle,
    emit,
)
from duplidex.core.interfaces import FileCrawler
from duplidex.core.models import FileRecord, ScanParams, ScanReport

logger = logging.getLogger(__name__)

# Directory names skipped when system paths are ignored (compared case-insensitively).
SYSTEM_DIR_NAMES = frozenset(name.lower() for name in (
    "Windows",
    "Program Files",
    "Program Files (x86)",
    "AppData",
    "$Recycle.Bin",
    "Recycler",
    "System Volume Information",
    "node_modules",
    "__pycache__",
    "Temp",
    "tmp",
))


def is_under(path: str, prefix: str) -> bool:
    """True if `path` equals `prefix` or lies below it ('/a' does not own '/ab')."""
    trimmed = prefix.rstrip("/\\")
    if not trimmed:
        return path.startswith(prefix)
    if path == trimmed:
        return True
    return path.startswith(trimmed + "/") or path.startswith(trimmed + "\\")


class _ScanState:
    """Counters and staged upserts shared by the traversal threads."""

    def __init__(self, snapshot: Dict[str, Tuple[int, float]]):
        self.snapshot = snapshot
        self.observed: Set[str] = set()
        self.staged: List[FileRecord] = []
        self.scanned = 0
        self.upserted = 0
        self.errors: List[BaseException] = []
        self.lock = threading.Lock()


class FileCrawlerImpl(FileCrawler):
    """
    Crawls directories concurrently and keeps the index in sync with the filesystem.

    Attributes:
        index: FileIndex to diff against and write to
        excluded_dirs: Extra prefixes to skip on top of the index's excluded folders
        concurrency: Number of traversal threads
        batch_size: Staged upserts per transaction
        progress_interval: Minimum seconds between `scan-progress` events
        include_empty: Index zero-byte files too
    """

    def __init__(
        self,
        index,
        excluded_dirs: Optional[List[str]] = None,
        concurrency: int = 32,
        batch_size: int = 1000,
        progress_interval: float = 0.2,
        include_empty: bool = False,
    ):
        self.index = index
        self.excluded_dirs = [os.path.normpath(d) for d in excluded_dirs] if excluded_dirs else []
        self.concurrency = max(1, concurrency)
        self.batch_size = max(1, batch_size)
        self.progress_interval = progress_interval
        self.include_empty = include_empty

    def crawl(
        self,
        params: ScanParams,
        token: Optional[CancellationToken] = None,
        event_callback: Optional[EventCallback] = None
    ) -> ScanReport:
        """
        Walk every root of `params`, upsert new/changed files and prune vanished ones.
        Emits `scan-complete` or `scan-cancelled` at the end.
        """
        token = token or CancellationToken()
        start_time = time.time()
        logger.info(f"Starting scan of {len(params.roots)} root(s)")

        if params.force_refresh:
            self.index.clear()
            snapshot: Dict[str, Tuple[int, float]] = {}
        else:
            snapshot = self.index.diff_snapshot()

        excluded = self.excluded_dirs + [f.path for f in self.index.get_excluded_folders()]
        allowed = params.allowed_extensions()
        state = _ScanState(snapshot)
        throttle = ProgressThrottle(self.progress_interval)
        pending: "queue.Queue[Optional[str]]" = queue.Queue()

        reachable_roots = []
        for root in params.roots:
            if self._is_excluded(root, excluded):
                logger.info(f"Skipping excluded root: {root}")
                continue
            if not os.path.isdir(root):
                logger.warning(f"Root is not an accessible directory: {root}")
                continue
            reachable_roots.append(root)
            pending.put(root)

        def expand(directory: str) -> None:
            try:
                with os.scandir(directory) as entries:
                    for entry in entries:
                        if token.cancelled or state.errors:
                            return
                        self._visit(entry, params, excluded, allowed, state, pending)
                        self._report_progress(state, throttle, event_callback)
            except OSError as e:
                logger.debug(f"Cannot read directory {directory}: {e}")

        def worker() -> None:
            while True:
                directory = pending.get()
                try:
                    if directory is None:
                        return
                    if token.cancelled or state.errors:
                        continue
                    expand(directory)
                except Exception as e:
                    logger.exception(f"Unexpected error while scanning {directory}")
                    with state.lock:
                        state.errors.append(e)
                finally:
                    pending.task_done()

        threads = [
            threading.Thread(target=worker, name=f"duplidex-scan-{i}", daemon=True)
            for i in range(self.concurrency)
        ]
        for thread in threads:
            thread.start()
        pending.join()
        for _ in threads:
            pending.put(None)
        for thread in threads:
            thread.join()

        self._flush(state, force=True)
        if state.errors:
            raise state.errors[0]

        cancelled = token.cancelled
        pruned = 0
        if not cancelled and not params.force_refresh:
            vanished = [
                path for path in snapshot
                if path not in state.observed
                and any(is_under(path, root) for root in reachable_roots)
            ]
            if vanished:
                logger.info(f"Removing {len(vanished)} vanished file(s) from the index")
                pruned = self.index.delete_by_paths(vanished)

        report = ScanReport(
            scanned=state.scanned,
            upserted=state.upserted,
            pruned=pruned,
            cancelled=cancelled,
        )
        elapsed = time.time() - start_time
        if cancelled:
            logger.warning(f"Scan cancelled after {state.scanned} file(s); staged changes were saved")
            emit(event_callback, SCAN_CANCELLED)
        else:
            logger.info(
                f"Scan finished in {elapsed:.2f}s. Total files: {report.scanned}, "
                f"new/changed: {report.upserted}, removed: {report.pruned}"
            )
            emit(event_callback, SCAN_COMPLETE, {"count": report.scanned})
        return report

    def _visit(self, entry: os.DirEntry, params: ScanParams, excluded: List[str],
               allowed: Set[str], state: _ScanState, pending: queue.Queue) -> None:
        """Queue a subdirectory or stat and stage a single file."""
        try:
            if entry.is_symlink():
                logger.debug(f"Skipping symbolic link: {entry.path}")
                return
            if entry.is_dir(follow_symlinks=False):
                if self._should_descend(entry, params, excluded):
                    pending.put(entry.path)
                return
            if not entry.is_file(follow_symlinks=False):
                return
        except OSError as e:
            logger.debug(f"Cannot inspect {entry.path}: {e}")
            return

        if allowed and os.path.splitext(entry.name)[1].lower() not in allowed:
            return

        try:
            st = entry.stat(follow_symlinks=False)
        except OSError as e:
            logger.debug(f"Could not stat {entry.path}: {e}")
            return

        if st.st_size == 0 and not self.include_empty:
            logger.debug(f"Skipping zero-byte file: {entry.path}")
            return

        record = FileRecord(path=entry.path, size=st.st_size, mtime=st.st_mtime)
        with state.lock:
            state.observed.add(record.path)
            state.scanned += 1
            if state.snapshot.get(record.path) == (record.size, record.mtime):
                return
            state.staged.append(record)
        self._flush(state)

    def _should_descend(self, entry: os.DirEntry, params: ScanParams, excluded: List[str]) -> bool:
        if params.ignore_system_paths:
            if entry.name.startswith("."):
                logger.debug(f"Skipping hidden directory: {entry.path}")
                return False
            if entry.name.lower() in SYSTEM_DIR_NAMES:
                logger.debug(f"Skipping system directory: {entry.path}")
                return False
        if self._is_excluded(entry.path, excluded):
            logger.debug(f"Skipping excluded directory: {entry.path}")
            return False
        return True

    @staticmethod
    def _is_excluded(path: str, excluded: List[str]) -> bool:
        return any(is_under(path, prefix) for prefix in excluded)

    def _flush(self, state: _ScanState, force: bool = False) -> None:
        """Write staged records once a batch is full (or unconditionally with force)."""
        with state.lock:
            if not state.staged or (not force and len(state.staged) < self.batch_size):
                return
            batch = state.staged
            state.staged = []
        written = self.index.upsert_many(batch)
        with state.lock:
            state.upserted += written
        logger.debug(f"Flushed {written} record(s) to the index")

    @staticmethod
    def _report_progress(state: _ScanState, throttle: ProgressThrottle,
                         event_callback: Optional[EventCallback]) -> None:
        if event_callback is None or not throttle.ready():
            return
        with state.lock:
            count = state.scanned
        emit(event_callback, SCAN_PROGRESS, {"count": count})
