"""
Duplidex: incremental duplicate file finder backed by a persistent index.

Core features:
- SQLite index of path/size/mtime: unchanged files are never re-read
- Tiered hashing (size -> partial hash -> full hash) with xxHash
- Duplicate files and duplicate folders
- Reversible quarantine with history, final removal to the system trash (via send2trash)
- Optional GUI worker with PySide6 (install with [gui] extra)
- CLI interface for headless/server usage
"""

# Get version
from importlib.metadata import PackageNotFoundError, version as _version

try:
    __version__ = _version("duplidex")
except PackageNotFoundError:
    __version__ = "0.0.0"

# Public API: only what users should import directly
from duplidex.commands import DeduplicationCommand
from duplidex.core import (
    CancellationToken, Category, DuplicateGroup, DuplicateQuery, EngineConfig, FileIndex,
    FileRecord, FolderGroup, RunOutcome, ScanParams, SortOrder)
from duplidex.utils.convert_utils import ConvertUtils
from duplidex.services import DuplicateService, MoveResult, QuarantineService

__all__ = [
    "DeduplicationCommand",
    "CancellationToken",
    "Category",
    "DuplicateGroup",
    "DuplicateQuery",
    "EngineConfig",
    "FileIndex",
    "FileRecord",
    "FolderGroup",
    "RunOutcome",
    "ScanParams",
    "SortOrder",
    "ConvertUtils",
    "DuplicateService",
    "MoveResult",
    "QuarantineService",
    "__version__",
]
