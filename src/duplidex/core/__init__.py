"""
Core duplicate-detection engine: persistent index, crawler, tiered hasher and pipeline.

This package contains the performance-critical foundation of duplidex:
- FileIndex: SQLite index of path/size/mtime and both hash tiers (SQLAlchemy)
- FileCrawlerImpl: concurrent queue-based traversal that syncs the index with disk
- HasherImpl + XXHashAlgorithmImpl: XXH3-128 partial/full/sample content hashing
- DeduplicatorImpl: two ordered passes (size -> partial hash -> full hash)
- FolderFingerprintEngine: duplicate folders derived from file-level hashes
- Models: FileRecord, DuplicateGroup, FolderGroup and configuration objects

All components are pure Python with no GUI dependencies: suitable for CLI and server usage.
"""

from .cancellation import CancellationToken
from .errors import ConfigurationError, DuplidexError, MoveError, TransientIOError
from .index import FileIndex
from .scanner import FileCrawlerImpl
from .hasher import HasherImpl, XXHashAlgorithmImpl
from .deduplicator import DeduplicatorImpl
from .folders import FolderFingerprintEngine, group_duplicate_folders
from .models import (
    Category, DuplicateGroup, DuplicateQuery, DuplicateStats, EngineConfig, FileRecord,
    FolderGroup, HistoryRecord, ProcessingStats, RunOutcome, RunResult, RunState,
    ScanParams, ScanReport, SortOrder)

__all__ = [
    "CancellationToken",
    "ConfigurationError",
    "DuplidexError",
    "MoveError",
    "TransientIOError",
    "FileIndex",
    "FileCrawlerImpl",
    "HasherImpl",
    "XXHashAlgorithmImpl",
    "DeduplicatorImpl",
    "FolderFingerprintEngine",
    "group_duplicate_folders",
    "Category",
    "DuplicateGroup",
    "DuplicateQuery",
    "DuplicateStats",
    "EngineConfig",
    "FileRecord",
    "FolderGroup",
    "HistoryRecord",
    "ProcessingStats",
    "RunOutcome",
    "RunResult",
    "RunState",
    "ScanParams",
    "ScanReport",
    "SortOrder",
]
