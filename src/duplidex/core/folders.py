"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/folders.py
Duplicate-folder detection derived from file-level full hashes.

A directory's fingerprint covers only the files directly inside it that
carry a full hash: entries `name + "\\x1f" + full_hash`, sorted by file name in
code-point order, joined by "\\x1e" and hashed with SHA-256. Two directories
with equal fingerprints hold the same set of (name, content) pairs.
"""

import hashlib
import logging
from collections import defaultdict
from typing import Dict, Iterable, List

from duplidex.core.models import FileRecord, FolderGroup

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "\x1f"
ENTRY_SEPARATOR = "\x1e"


def compute_folder_fingerprint(records: Iterable[FileRecord]) -> str:
    """SHA-256 hex digest of one directory's (name, full hash) entries."""
    entries = sorted(
        (r.name, r.full_hash) for r in records if r.full_hash is not None
    )
    payload = ENTRY_SEPARATOR.join(f"{name}{FIELD_SEPARATOR}{value}" for name, value in entries)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def group_duplicate_folders(records: Iterable[FileRecord]) -> List[FolderGroup]:
    """
    Group directories by fingerprint and keep fingerprints shared by two or more.

    Records without a full hash are ignored, so a directory with no hashed
    files never appears. Groups come back largest first (total size of one
    member), ties broken by fingerprint; folders inside a group are sorted.
    """
    by_folder: Dict[str, List[FileRecord]] = defaultdict(list)
    for record in records:
        if record.full_hash is not None:
            by_folder[record.parent].append(record)

    by_fingerprint: Dict[str, List[str]] = defaultdict(list)
    summary: Dict[str, tuple] = {}
    for folder, files in by_folder.items():
        fingerprint = compute_folder_fingerprint(files)
        by_fingerprint[fingerprint].append(folder)
        summary.setdefault(fingerprint, (len(files), sum(f.size for f in files)))

    groups = [
        FolderGroup(
            fingerprint=fingerprint,
            folders=sorted(folders),
            file_count=summary[fingerprint][0],
            total_size=summary[fingerprint][1],
        )
        for fingerprint, folders in by_fingerprint.items()
        if len(folders) >= 2
    ]
    groups.sort(key=lambda g: (-g.total_size, g.fingerprint))
    logger.debug(f"Fingerprinted {len(by_folder)} folder(s), {len(groups)} duplicate group(s)")
    return groups


class FolderFingerprintEngine:
    """Reads hashed records from the index and groups identical folders."""

    def __init__(self, index):
        self.index = index

    def find_groups(self) -> List[FolderGroup]:
        return group_duplicate_folders(self.index.hashed_files())
