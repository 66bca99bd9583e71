"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/index.py
Persistent file index backed by SQLite through SQLAlchemy.

The index is the only state that survives between runs:
- `files`            : path, size, mtime and the two hash tiers
- `history`          : quarantine moves that can still be undone
- `excluded_folders` : prefixes the crawler must never enter

Write discipline
----------------
The crawler writes size/mtime (`upsert_many`), the hashing stages write hash
columns (`set_partial_hashes` / `set_full_hashes`). An upsert that changes
size or mtime nulls both hashes in the same statement, and hash writes only
land if size and mtime still match what was hashed, so a stale hash can never
be attached to new content.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import (
    and_,
    bindparam,
    case,
    create_engine,
    delete,
    event,
    func,
    inspect,
    null,
    or_,
    select,
    update,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from duplidex.core.folders import group_duplicate_folders
from duplidex.core.models import (
    DuplicateGroup,
    DuplicateQuery,
    DuplicateStats,
    ExcludedFolder,
    FileRecord,
    HashResult,
    HistoryRecord,
)
from duplidex.core.schema import Base, ExcludedFolderRow, FileRow, HistoryRow

logger = logging.getLogger(__name__)

# SQLite caps bound parameters per statement; stay well below the lowest default.
_IN_CLAUSE_CHUNK = 500


def _configure_connection(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def prefix_condition(column, prefix: str):
    """
    SQL condition matching `prefix` itself or anything below it, for paths
    stored with either '/' or '\\' separators.
    """
    trimmed = prefix.rstrip("/\\")
    if not trimmed:
        # Filesystem root: every path starting with the separator is below it.
        return func.substr(column, 1, len(prefix)) == prefix
    return or_(
        column == trimmed,
        func.substr(column, 1, len(trimmed) + 1).in_([trimmed + "/", trimmed + "\\"]),
    )


def _chunks(items: Sequence, size: int = _IN_CLAUSE_CHUNK):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _to_record(row: FileRow) -> FileRecord:
    return FileRecord(
        id=row.id,
        path=row.path,
        size=row.size,
        mtime=row.mtime,
        partial_hash=row.partial_hash,
        full_hash=row.full_hash,
        created_at=row.created_at,
    )


def _to_history(row: HistoryRow) -> HistoryRecord:
    return HistoryRecord(
        id=row.id,
        original_path=row.original_path,
        moved_path=row.moved_path,
        timestamp=row.timestamp,
    )


class FileIndex:
    """
    Durable store of FileRecords keyed by path, plus quarantine history and
    excluded folders.

    Safe to share between threads: reads run on pooled connections, writes are
    serialised by an internal lock and each batch is a single transaction.
    """

    def __init__(self, db_path: str, echo: bool = False):
        self.db_path = db_path
        if db_path == ":memory:":
            self._engine = create_engine(
                "sqlite://",
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_engine(
                f"sqlite:///{db_path}",
                echo=echo,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        event.listen(self._engine, "connect", _configure_connection)
        self._session_factory = sessionmaker(
            bind=self._engine, autoflush=False, expire_on_commit=False
        )
        self._write_lock = threading.RLock()
        self._migrate()
        Base.metadata.create_all(self._engine)
        logger.debug(f"Index opened at {db_path}")

    def _migrate(self) -> None:
        """Drop a legacy `files` table that predates the two hash tiers; the next scan reindexes."""
        inspector = inspect(self._engine)
        if "files" not in inspector.get_table_names():
            return
        columns = {col["name"] for col in inspector.get_columns("files")}
        if "partial_hash" not in columns:
            logger.warning("Legacy files table found without partial_hash; recreating it")
            FileRow.__table__.drop(self._engine)

    def close(self) -> None:
        self._engine.dispose()

    def __enter__(self) -> "FileIndex":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # =============================
    # Crawler-facing operations
    # =============================

    def upsert_many(self, records: Iterable[FileRecord]) -> int:
        """
        Insert new paths, update size/mtime of known ones.
        Both hash columns are nulled iff size or mtime changed.
        The whole batch commits or none of it does.
        """
        rows = [{"path": r.path, "size": r.size, "mtime": r.mtime} for r in records]
        if not rows:
            return 0

        table = FileRow.__table__
        stmt = sqlite_insert(table)
        changed = or_(table.c.size != stmt.excluded.size, table.c.mtime != stmt.excluded.mtime)
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.path],
            set_={
                "size": stmt.excluded.size,
                "mtime": stmt.excluded.mtime,
                "partial_hash": case((changed, null()), else_=table.c.partial_hash),
                "full_hash": case((changed, null()), else_=table.c.full_hash),
            },
        )
        with self._write_lock, self._session_factory.begin() as session:
            session.connection().execute(stmt, rows)
        return len(rows)

    def diff_snapshot(self) -> Dict[str, Tuple[int, float]]:
        """Current path -> (size, mtime) mapping, read in a single statement."""
        with self._session_factory() as session:
            rows = session.execute(select(FileRow.path, FileRow.size, FileRow.mtime)).all()
        return {path: (size, mtime) for path, size, mtime in rows}

    def delete_by_paths(self, paths: Iterable[str]) -> int:
        paths = list(paths)
        if not paths:
            return 0
        deleted = 0
        with self._write_lock, self._session_factory.begin() as session:
            for chunk in _chunks(paths):
                result = session.execute(
                    delete(FileRow).where(FileRow.path.in_(chunk)),
                    execution_options={"synchronize_session": False},
                )
                deleted += result.rowcount or 0
        return deleted

    def delete_by_prefix(self, prefix: str) -> int:
        with self._write_lock, self._session_factory.begin() as session:
            return self._delete_by_prefix(session, prefix)

    @staticmethod
    def _delete_by_prefix(session, prefix: str) -> int:
        result = session.execute(
            delete(FileRow).where(prefix_condition(FileRow.path, prefix)),
            execution_options={"synchronize_session": False},
        )
        return result.rowcount or 0

    def clear(self) -> None:
        with self._write_lock, self._session_factory.begin() as session:
            session.execute(delete(FileRow))
        logger.info("Index cleared")

    def count(self) -> int:
        with self._session_factory() as session:
            return session.execute(select(func.count()).select_from(FileRow)).scalar_one()

    # =============================
    # Hashing-facing operations
    # =============================

    def candidates_by_size_collision(self) -> List[FileRecord]:
        """Files sharing their size with at least one other file and still lacking a partial hash."""
        shared_sizes = (
            select(FileRow.size)
            .group_by(FileRow.size)
            .having(func.count() > 1)
        )
        stmt = (
            select(FileRow)
            .where(FileRow.size.in_(shared_sizes), FileRow.partial_hash.is_(None))
            .order_by(FileRow.size, FileRow.path)
        )
        with self._session_factory() as session:
            return [_to_record(row) for row in session.scalars(stmt)]

    def candidates_by_partial_hash_collision(self) -> List[FileRecord]:
        """Files sharing their partial hash with at least one other file and still lacking a full hash."""
        shared_partials = (
            select(FileRow.partial_hash)
            .where(FileRow.partial_hash.is_not(None))
            .group_by(FileRow.partial_hash)
            .having(func.count() > 1)
        )
        stmt = (
            select(FileRow)
            .where(FileRow.partial_hash.in_(shared_partials), FileRow.full_hash.is_(None))
            .order_by(FileRow.partial_hash, FileRow.path)
        )
        with self._session_factory() as session:
            return [_to_record(row) for row in session.scalars(stmt)]

    def set_partial_hashes(self, results: Sequence[HashResult]) -> None:
        self._set_hashes("partial_hash", results)

    def set_full_hashes(self, results: Sequence[HashResult]) -> None:
        self._set_hashes("full_hash", results)

    def _set_hashes(self, column: str, results: Sequence[HashResult]) -> None:
        if not results:
            return
        table = FileRow.__table__
        stmt = (
            update(table)
            .where(and_(
                table.c.id == bindparam("b_id"),
                table.c.size == bindparam("b_size"),
                table.c.mtime == bindparam("b_mtime"),
            ))
            .values({column: bindparam("b_value")})
        )
        params = [
            {"b_id": r.file_id, "b_size": r.size, "b_mtime": r.mtime, "b_value": r.value}
            for r in results
        ]
        with self._write_lock, self._session_factory.begin() as session:
            session.connection().execute(stmt, params)

    # =============================
    # Query surface
    # =============================

    def duplicate_groups(self, query: Optional[DuplicateQuery] = None) -> List[DuplicateGroup]:
        """
        Files grouped by full hash (groups of two or more), one page at a time.
        Pages are ordered by hash so pagination is stable between calls.
        """
        query = query or DuplicateQuery()
        hash_stmt = select(FileRow.full_hash).where(FileRow.full_hash.is_not(None))
        if query.search:
            hash_stmt = hash_stmt.where(FileRow.path.contains(query.search, autoescape=True))
        if query.min_size > 0:
            hash_stmt = hash_stmt.where(FileRow.size >= query.min_size)
        hash_stmt = (
            hash_stmt
            .group_by(FileRow.full_hash)
            .having(func.count() > 1)
            .order_by(FileRow.full_hash)
            .limit(query.limit)
            .offset(query.offset)
        )

        with self._session_factory() as session:
            hashes = list(session.scalars(hash_stmt))
            if not hashes:
                return []
            rows = session.scalars(
                select(FileRow)
                .where(FileRow.full_hash.in_(hashes))
                .order_by(FileRow.full_hash, FileRow.path)
            ).all()

        groups: Dict[str, DuplicateGroup] = {}
        for row in rows:
            record = _to_record(row)
            group = groups.get(record.full_hash)
            if group is None:
                group = DuplicateGroup(hash=record.full_hash, size=record.size, files=[])
                groups[record.full_hash] = group
            group.files.append(record)
        return [groups[h] for h in hashes if h in groups]

    def hashed_files(self) -> List[FileRecord]:
        """Every record with a full hash, input for folder fingerprinting."""
        stmt = select(FileRow).where(FileRow.full_hash.is_not(None)).order_by(FileRow.path)
        with self._session_factory() as session:
            return [_to_record(row) for row in session.scalars(stmt)]

    def get_files(self, file_ids: Iterable[int]) -> List[FileRecord]:
        file_ids = list(file_ids)
        records = []
        with self._session_factory() as session:
            for chunk in _chunks(file_ids):
                rows = session.scalars(select(FileRow).where(FileRow.id.in_(chunk)))
                records.extend(_to_record(row) for row in rows)
        return records

    def stats(self) -> DuplicateStats:
        dup = (
            select(
                FileRow.full_hash,
                func.count().label("n"),
                func.max(FileRow.size).label("size"),
            )
            .where(FileRow.full_hash.is_not(None))
            .group_by(FileRow.full_hash)
            .having(func.count() > 1)
            .subquery()
        )
        stmt = select(
            func.count(),
            func.coalesce(func.sum(dup.c.n), 0),
            func.coalesce(func.sum((dup.c.n - 1) * dup.c.size), 0),
        ).select_from(dup)
        with self._session_factory() as session:
            sets, files, wasted = session.execute(stmt).one()
        folder_groups = group_duplicate_folders(self.hashed_files())
        return DuplicateStats(
            duplicate_files=int(files),
            duplicate_sets=int(sets),
            duplicate_folder_groups=len(folder_groups),
            wasted_bytes=int(wasted),
        )

    # =============================
    # History
    # =============================

    def add_history_and_remove_file(self, file_id: int, original_path: str,
                                    moved_path: str) -> HistoryRecord:
        """Record a completed quarantine move and drop the file from the index atomically."""
        with self._write_lock, self._session_factory.begin() as session:
            row = HistoryRow(original_path=original_path, moved_path=moved_path)
            session.add(row)
            session.execute(delete(FileRow).where(FileRow.id == file_id))
            session.flush()
            session.refresh(row)
            return _to_history(row)

    def get_history(self, history_ids: Optional[Iterable[int]] = None) -> List[HistoryRecord]:
        stmt = select(HistoryRow).order_by(HistoryRow.timestamp.desc(), HistoryRow.id.desc())
        with self._session_factory() as session:
            if history_ids is None:
                return [_to_history(row) for row in session.scalars(stmt)]
            records = []
            ids = list(history_ids)
            for chunk in _chunks(ids):
                records.extend(
                    _to_history(row)
                    for row in session.scalars(stmt.where(HistoryRow.id.in_(chunk)))
                )
            return records

    def delete_history(self, history_id: int) -> bool:
        with self._write_lock, self._session_factory.begin() as session:
            result = session.execute(delete(HistoryRow).where(HistoryRow.id == history_id))
            return bool(result.rowcount)

    # =============================
    # Excluded folders
    # =============================

    def add_excluded_folder(self, path: str) -> int:
        """
        Exclude a folder and purge every indexed file below it in one transaction.
        Returns the number of purged records.
        """
        path = os.path.normpath(path.strip())
        stmt = sqlite_insert(ExcludedFolderRow.__table__).values(path=path)
        stmt = stmt.on_conflict_do_nothing(index_elements=["path"])
        with self._write_lock, self._session_factory.begin() as session:
            session.execute(stmt)
            purged = self._delete_by_prefix(session, path)
        logger.info(f"Excluded {path}; removed {purged} indexed file(s)")
        return purged

    def remove_excluded_folder(self, path: str) -> bool:
        path = os.path.normpath(path.strip())
        with self._write_lock, self._session_factory.begin() as session:
            result = session.execute(delete(ExcludedFolderRow).where(ExcludedFolderRow.path == path))
            return bool(result.rowcount)

    def get_excluded_folders(self) -> List[ExcludedFolder]:
        with self._session_factory() as session:
            rows = session.scalars(select(ExcludedFolderRow).order_by(ExcludedFolderRow.path))
            return [ExcludedFolder(id=row.id, path=row.path) for row in rows]
