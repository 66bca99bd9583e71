"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/models.py
Data models shared by the index, the crawler, the hashing pipeline and the
quarantine service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Dict, Optional, Union, Set
import os

from duplidex.core.errors import ConfigurationError


# ======================
#  Enums
# ======================

class Category(Enum):
    """
    Content category selectable for a scan.
    Each category expands to a fixed allow-list of file extensions.
    """
    PHOTOS = "photos"
    MUSIC = "music"
    VIDEOS = "videos"
    DOCUMENTS = "documents"

    @property
    def extensions(self) -> List[str]:
        return CATEGORY_EXTENSIONS[self]

    def __repr__(self) -> str:
        return self.value


CATEGORY_EXTENSIONS: Dict[Category, List[str]] = {
    Category.PHOTOS: [".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff", ".webp", ".heic", ".raw"],
    Category.MUSIC: [".mp3", ".wav", ".flac", ".aac", ".ogg", ".m4a"],
    Category.VIDEOS: [".mp4", ".mkv", ".avi", ".mov", ".wmv", ".flv", ".webm"],
    Category.DOCUMENTS: [".pdf", ".doc", ".docx", ".txt", ".rtf", ".odt",
                         ".xls", ".xlsx", ".ppt", ".pptx"],
}


class SortOrder(Enum):
    SHORTEST_PATH = "shortest-path"
    SHORTEST_FILENAME = "shortest-filename"


class RunState(Enum):
    """Lifecycle of a scan + processing run."""
    IDLE = "idle"
    SCANNING = "scanning"
    PROCESSING = "processing"
    DONE = "done"
    CANCELLED = "cancelled"


class RunOutcome(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    INVALID = "invalid"


# ======================
#  Persistent records
# ======================

@dataclass(frozen=True)
class FileRecord:
    """
    One indexed file. Immutable snapshot of a row in the `files` table.
    Hash fields are only meaningful for the (size, mtime) pair they were read with.
    """
    path: str
    size: int  # in bytes
    mtime: float
    id: Optional[int] = None
    partial_hash: Optional[str] = None
    full_hash: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    @property
    def parent(self) -> str:
        return os.path.dirname(self.path)

    @property
    def path_depth(self) -> int:
        return self.path.rstrip(os.sep).count(os.sep)

    def __repr__(self):
        return f"<FileRecord path={self.path}, size={self.size}>"


@dataclass(frozen=True)
class HistoryRecord:
    original_path: str
    moved_path: str
    id: Optional[int] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class ExcludedFolder:
    path: str
    id: Optional[int] = None


@dataclass(frozen=True)
class HashResult:
    """A hash computed by a worker, tagged with the metadata it was computed against."""
    file_id: int
    size: int
    mtime: float
    value: str


# ======================
#  Query results
# ======================

@dataclass
class DuplicateGroup:
    """
    Files sharing one full hash. Only groups with two or more files are ever
    returned by the index.
    """
    hash: str
    size: int
    files: List[FileRecord]

    @property
    def duplicate_count(self) -> int:
        """How many files are in this group."""
        return len(self.files)

    @property
    def wasted_bytes(self) -> int:
        """Bytes that would be freed by keeping a single copy."""
        return self.size * max(0, self.duplicate_count - 1)

    def __repr__(self):
        return f"<DuplicateGroup size={self.size}, count={len(self.files)}>"


@dataclass
class FolderGroup:
    """Directories whose (filename, content) pairs are identical."""
    fingerprint: str
    folders: List[str]
    file_count: int
    total_size: int

    def __repr__(self):
        return f"<FolderGroup folders={len(self.folders)}, files={self.file_count}>"


@dataclass(frozen=True)
class DuplicateStats:
    duplicate_files: int = 0
    duplicate_sets: int = 0
    duplicate_folder_groups: int = 0
    wasted_bytes: int = 0


@dataclass
class DuplicateQuery:
    """Filter and pagination for duplicate listings."""
    search: str = ""
    min_size: int = 0
    limit: int = 50
    offset: int = 0

    def __post_init__(self):
        if self.min_size < 0:
            raise ConfigurationError("Minimum size cannot be negative")
        if self.limit <= 0:
            raise ConfigurationError("Limit must be positive")
        if self.offset < 0:
            raise ConfigurationError("Offset cannot be negative")
        self.search = (self.search or "").strip()


# ======================
#  Run reports
# ======================

@dataclass
class ScanReport:
    scanned: int = 0
    upserted: int = 0
    pruned: int = 0
    cancelled: bool = False


@dataclass
class ProcessingStats:
    """
    Statistics collected during the hashing passes.
    """
    def __init__(self):
        self.total_time: float = 0.0
        self.stage_stats: Dict[str, Dict[str, Union[int, float]]] = {}

    def update_stage(
            self,
            stage_name: str,
            candidates: int,
            hashed: int,
            failed: int,
            duration: float
    ) -> None:
        if stage_name not in self.stage_stats:
            self.stage_stats[stage_name] = {
                "candidates": 0,
                "hashed": 0,
                "failed": 0,
                "time": 0.0
            }
        self.stage_stats[stage_name]["candidates"] += candidates
        self.stage_stats[stage_name]["hashed"] += hashed
        self.stage_stats[stage_name]["failed"] += failed
        self.stage_stats[stage_name]["time"] += duration

    @property
    def total_hashed(self) -> int:
        return sum(int(data["hashed"]) for data in self.stage_stats.values())

    def print_summary(self) -> str:
        lines = [
            "📊 Processing Statistics:",
            f"Total Execution Time: {self.total_time:.3f}s\n",
            "Stage: CANDIDATES / HASHED / FAILED / TIME"
        ]
        for stage, data in self.stage_stats.items():
            lines.append(
                f"{stage}: {data['candidates']} / {data['hashed']} / "
                f"{data['failed']} / {data['time']:.3f}s"
            )
        return "\n".join(lines)


@dataclass
class RunResult:
    outcome: RunOutcome
    scan: Optional[ScanReport] = None
    processing: Optional[ProcessingStats] = None
    message: str = ""

    @property
    def completed(self) -> bool:
        return self.outcome is RunOutcome.COMPLETED


# ======================
#  Scan and engine configuration
# ======================

@dataclass
class ScanParams:
    """What to scan. Mirrors the configuration sent by the presentation layer."""
    roots: List[str]
    categories: List[Category] = field(default_factory=list)
    ignore_system_paths: bool = True
    force_refresh: bool = False

    def __post_init__(self):
        """Validate parameters immediately after creation."""
        roots = [str(r).strip() for r in (self.roots or []) if str(r).strip()]
        if not roots:
            raise ConfigurationError("No roots selected")
        self.roots = [os.path.normpath(os.path.abspath(r)) for r in roots]

        normalized = []
        for category in self.categories:
            if isinstance(category, Category):
                normalized.append(category)
                continue
            try:
                normalized.append(Category(str(category).strip().lower()))
            except ValueError:
                raise ConfigurationError(f"Unknown category: '{category}'")
        self.categories = normalized

    def allowed_extensions(self) -> Set[str]:
        """Extension allow-list; empty set means every extension is allowed."""
        allowed = set()
        for category in self.categories:
            allowed.update(category.extensions)
        return allowed


def _default_home() -> Path:
    return Path.home() / ".duplidex"


@dataclass
class EngineConfig:
    """Where state lives and how hard the engine may push the machine."""
    db_path: str = field(default_factory=lambda: str(_default_home() / "index.db"))
    quarantine_root: str = field(default_factory=lambda: str(Path.home() / "Duplidex"))
    scan_concurrency: int = 32
    hash_concurrency: int = 2
    batch_size: int = 1000
    hash_flush_size: int = 100
    progress_interval: float = 0.2
    include_empty: bool = False

    def __post_init__(self):
        if self.scan_concurrency < 1:
            raise ConfigurationError("Scan concurrency must be at least 1")
        if self.hash_concurrency < 1:
            raise ConfigurationError("Hash concurrency must be at least 1")
        if self.batch_size < 1:
            raise ConfigurationError("Batch size must be at least 1")
        if self.hash_flush_size < 1:
            raise ConfigurationError("Hash flush size must be at least 1")
        if self.progress_interval < 0:
            raise ConfigurationError("Progress interval cannot be negative")
