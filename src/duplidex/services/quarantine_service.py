"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/quarantine_service.py
Reversible removal of duplicates.

Quarantined files are moved (never copied, never deleted) into
`<quarantine_root>/<YYYY-MM-DD>/<name>`, and every move is logged in the
index history so it can be undone with `restore` or finalised with `discard`
(system trash via send2trash). Each file is handled independently: one
failure never rolls back its siblings.
"""
import errno
import logging
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Tuple

from send2trash import send2trash

from duplidex.core.errors import MoveError
from duplidex.core.models import HistoryRecord

logger = logging.getLogger(__name__)

SAFE_SUFFIX_PADDING = 5


@dataclass
class MoveResult:
    """Outcome of a batch operation: what worked and what failed (with the reason)."""
    succeeded: List[HistoryRecord] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def generate_safe_path(dst_dir: Path, original_name: str) -> Path:
    """
    Collision-free path in dst_dir for original_name,
    adding -00001, -00002, etc. before the extension if needed.
    """
    candidate = dst_dir / original_name
    count = 1
    stem, suffix = os.path.splitext(original_name)
    while candidate.exists():
        numbered = f"{stem}-{str(count).zfill(SAFE_SUFFIX_PADDING)}{suffix}"
        candidate = dst_dir / numbered
        count += 1
    return candidate


def move_file(src: str, dst: str) -> None:
    """
    Rename src to dst. Across filesystems, copy with metadata, verify the size
    and only then remove the source.
    """
    try:
        os.rename(src, dst)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
    logger.debug(f"Cross-device move, copying {src} -> {dst}")
    shutil.copy2(src, dst)
    if os.path.getsize(src) != os.path.getsize(dst):
        os.remove(dst)
        raise OSError(errno.EIO, f"Size mismatch after copying to {dst}")
    os.remove(src)


class QuarantineService:
    """
    Moves indexed files into the dated quarantine directory and back.

    Attributes:
        index: FileIndex holding files and history
        quarantine_root: Base directory of the quarantine
        clock: Returns "now"; the date of the operation names the subdirectory
    """

    def __init__(self, index, quarantine_root: str,
                 clock: Optional[Callable[[], datetime]] = None):
        self.index = index
        self.quarantine_root = Path(quarantine_root)
        self.clock = clock or datetime.now

    def target_dir(self) -> Path:
        return self.quarantine_root / self.clock().strftime("%Y-%m-%d")

    def move_to_quarantine(self, file_ids: Iterable[int]) -> MoveResult:
        """
        Move the given indexed files into today's quarantine folder.
        A file leaves the index (and enters history) only after its move succeeded.
        """
        file_ids = list(dict.fromkeys(file_ids))
        result = MoveResult()
        if not file_ids:
            return result

        records = {r.id: r for r in self.index.get_files(file_ids)}
        for missing in (i for i in file_ids if i not in records):
            logger.warning(f"File id {missing} is not in the index")
            result.failed.append((str(missing), "not in the index"))
        if not records:
            return result

        target_dir = self.target_dir()
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MoveError(str(self.quarantine_root), str(target_dir), str(e)) from e

        for file_id in file_ids:
            record = records.get(file_id)
            if record is None:
                continue
            try:
                result.succeeded.append(self._quarantine_one(record.id, record.path, target_dir))
            except MoveError as e:
                logger.warning(str(e))
                result.failed.append((record.path, e.reason))

        logger.info(f"Quarantined {len(result.succeeded)} file(s) into {target_dir}")
        return result

    def _quarantine_one(self, file_id: int, path: str, target_dir: Path) -> HistoryRecord:
        if not os.path.isfile(path):
            raise MoveError(path, str(target_dir), "file no longer exists")
        destination = generate_safe_path(target_dir, os.path.basename(path))
        try:
            move_file(path, str(destination))
        except OSError as e:
            raise MoveError(path, str(destination), str(e)) from e

        try:
            return self.index.add_history_and_remove_file(file_id, path, str(destination))
        except Exception as e:
            # The file is out of place but unrecorded: put it back.
            logger.exception(f"Failed to record quarantine of {path}")
            try:
                move_file(str(destination), path)
            except OSError:
                logger.error(f"Could not move {destination} back to {path}")
            raise MoveError(path, str(destination), f"history not recorded: {e}") from e

    def restore(self, history_ids: Iterable[int]) -> MoveResult:
        """Move quarantined files back to their original paths and drop their history rows."""
        result = MoveResult()
        for record in self._history_for(history_ids, result):
            try:
                if os.path.lexists(record.original_path):
                    raise MoveError(record.moved_path, record.original_path,
                                    "a file already exists at the original path")
                if not os.path.isfile(record.moved_path):
                    raise MoveError(record.moved_path, record.original_path,
                                    "quarantined copy is missing")
                try:
                    os.makedirs(os.path.dirname(record.original_path), exist_ok=True)
                    move_file(record.moved_path, record.original_path)
                except OSError as e:
                    raise MoveError(record.moved_path, record.original_path, str(e)) from e
            except MoveError as e:
                logger.warning(str(e))
                result.failed.append((record.original_path, e.reason))
                continue
            self._forget(record, record.original_path, result)

        logger.info(f"Restored {len(result.succeeded)} file(s)")
        return result

    def discard(self, history_ids: Iterable[int]) -> MoveResult:
        """
        Send quarantined copies to the system trash and forget them.
        A copy that is already gone only has its history row removed.
        """
        result = MoveResult()
        for record in self._history_for(history_ids, result):
            if os.path.lexists(record.moved_path):
                try:
                    send2trash(record.moved_path)
                except Exception as e:
                    error = MoveError(record.moved_path, "trash", str(e))
                    logger.warning(str(error))
                    result.failed.append((record.moved_path, error.reason))
                    continue
            else:
                logger.warning(f"Quarantined copy already gone: {record.moved_path}")
            self._forget(record, record.moved_path, result)

        logger.info(f"Discarded {len(result.succeeded)} file(s)")
        return result

    def get_history(self) -> List[HistoryRecord]:
        """History, newest first."""
        return self.index.get_history()

    def _forget(self, record: HistoryRecord, path: str, result: MoveResult) -> None:
        """Drop the history row of a finished item; a failure only affects this item."""
        try:
            self.index.delete_history(record.id)
        except Exception as e:
            logger.exception(f"Failed to remove history entry {record.id}")
            result.failed.append((path, f"history not updated: {e}"))
            return
        result.succeeded.append(record)

    def _history_for(self, history_ids: Iterable[int], result: MoveResult) -> List[HistoryRecord]:
        history_ids = list(dict.fromkeys(history_ids))
        if not history_ids:
            return []
        records = self.index.get_history(history_ids)
        found = {r.id for r in records}
        for missing in (i for i in history_ids if i not in found):
            logger.warning(f"History id {missing} not found")
            result.failed.append((str(missing), "no such history entry"))
        return records
