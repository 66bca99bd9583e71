"""
Unit tests for FileIndex: the SQLite-backed persistent index.
Verifies upsert/invalidation semantics, candidate queries, grouping,
exclusion cascade and history bookkeeping.
"""
import sqlite3

import pytest

from conftest import record
from duplidex.core.index import FileIndex
from duplidex.core.models import DuplicateQuery, FileRecord, HashResult


def _by_path(index):
    """Every indexed record keyed by path (ids are small in these tests)."""
    return {r.path: r for r in index.get_files(range(1, 1000))}


def _hash_everything(index, partial="p", full="f"):
    """Attach the given hashes to every indexed record."""
    files = list(_by_path(index).values())
    index.set_partial_hashes([HashResult(f.id, f.size, f.mtime, partial) for f in files])
    index.set_full_hashes([HashResult(f.id, f.size, f.mtime, full) for f in files])


class TestUpsert:
    """Crawler-facing writes."""

    def test_upsert_inserts_new_records(self, memory_index):
        written = memory_index.upsert_many([record("/a/1.txt"), record("/b/1.txt")])

        assert written == 2
        assert memory_index.count() == 2
        assert memory_index.diff_snapshot() == {"/a/1.txt": (10, 1.0), "/b/1.txt": (10, 1.0)}

    def test_upsert_empty_batch_is_noop(self, memory_index):
        assert memory_index.upsert_many([]) == 0
        assert memory_index.count() == 0

    def test_changed_mtime_nulls_both_hashes(self, memory_index):
        """Any metadata change must invalidate both hash tiers in the same write."""
        memory_index.upsert_many([record("/a/1.txt"), record("/b/1.txt")])
        _hash_everything(memory_index)

        memory_index.upsert_many([record("/a/1.txt", mtime=2.0)])

        files = _by_path(memory_index)
        assert files["/a/1.txt"].partial_hash is None
        assert files["/a/1.txt"].full_hash is None
        assert files["/b/1.txt"].partial_hash == "p"
        assert files["/b/1.txt"].full_hash == "f"

    def test_changed_size_nulls_both_hashes(self, memory_index):
        memory_index.upsert_many([record("/a/1.txt")])
        _hash_everything(memory_index)

        memory_index.upsert_many([record("/a/1.txt", size=11)])

        updated = _by_path(memory_index)["/a/1.txt"]
        assert updated.size == 11
        assert updated.partial_hash is None and updated.full_hash is None

    def test_identical_upsert_keeps_hashes(self, memory_index):
        memory_index.upsert_many([record("/a/1.txt")])
        _hash_everything(memory_index)

        memory_index.upsert_many([record("/a/1.txt")])

        assert _by_path(memory_index)["/a/1.txt"].full_hash == "f"

    def test_upsert_keeps_surrogate_id(self, memory_index):
        memory_index.upsert_many([record("/a/1.txt")])
        original_id = _by_path(memory_index)["/a/1.txt"].id

        memory_index.upsert_many([record("/a/1.txt", mtime=5.0)])

        assert _by_path(memory_index)["/a/1.txt"].id == original_id


class TestHashWrites:
    """Hash writes only land against the metadata they were computed for."""

    def test_stale_hash_is_not_stored(self, memory_index):
        memory_index.upsert_many([record("/a/1.txt")])
        stale = _by_path(memory_index)["/a/1.txt"]

        # File changed on disk and was re-crawled while the hash was being computed
        memory_index.upsert_many([record("/a/1.txt", mtime=9.0)])
        memory_index.set_partial_hashes([HashResult(stale.id, stale.size, stale.mtime, "old")])

        assert _by_path(memory_index)["/a/1.txt"].partial_hash is None

    def test_matching_hash_is_stored(self, memory_index):
        memory_index.upsert_many([record("/a/1.txt")])
        current = _by_path(memory_index)["/a/1.txt"]

        memory_index.set_full_hashes([HashResult(current.id, current.size, current.mtime, "fresh")])

        assert _by_path(memory_index)["/a/1.txt"].full_hash == "fresh"


class TestCandidates:
    """Candidate queries for the two hashing passes."""

    def test_size_collision_candidates(self, memory_index):
        memory_index.upsert_many([
            record("/a", size=10), record("/b", size=10), record("/c", size=20),
        ])

        candidates = memory_index.candidates_by_size_collision()

        assert sorted(c.path for c in candidates) == ["/a", "/b"]

    def test_size_candidates_exclude_already_hashed(self, memory_index):
        memory_index.upsert_many([record("/a"), record("/b")])
        _hash_everything(memory_index)

        assert memory_index.candidates_by_size_collision() == []

    def test_partial_collision_candidates(self, memory_index):
        memory_index.upsert_many([record("/a"), record("/b"), record("/c")])
        files = _by_path(memory_index)
        memory_index.set_partial_hashes([
            HashResult(files["/a"].id, 10, 1.0, "same"),
            HashResult(files["/b"].id, 10, 1.0, "same"),
            HashResult(files["/c"].id, 10, 1.0, "other"),
        ])

        candidates = memory_index.candidates_by_partial_hash_collision()

        assert sorted(c.path for c in candidates) == ["/a", "/b"]

    def test_unhashed_rows_are_not_partial_candidates(self, memory_index):
        memory_index.upsert_many([record("/a"), record("/b")])
        assert memory_index.candidates_by_partial_hash_collision() == []


class TestDuplicateGroups:
    """Grouping, filtering and pagination."""

    @pytest.fixture
    def grouped_index(self, memory_index):
        memory_index.upsert_many([
            record("/x/holiday/1.jpg", size=100),
            record("/y/holiday/1.jpg", size=100),
            record("/x/work/a.pdf", size=5000),
            record("/y/work/a.pdf", size=5000),
            record("/z/work/a.pdf", size=5000),
            record("/x/single.txt", size=7),
        ])
        files = _by_path(memory_index)
        hashes = {
            "/x/holiday/1.jpg": "h1", "/y/holiday/1.jpg": "h1",
            "/x/work/a.pdf": "h2", "/y/work/a.pdf": "h2", "/z/work/a.pdf": "h2",
            "/x/single.txt": "h3",
        }
        memory_index.set_full_hashes([
            HashResult(files[p].id, files[p].size, files[p].mtime, h) for p, h in hashes.items()
        ])
        return memory_index

    def test_groups_have_two_or_more_members(self, grouped_index):
        groups = grouped_index.duplicate_groups()

        assert [g.hash for g in groups] == ["h1", "h2"]
        assert [len(g.files) for g in groups] == [2, 3]
        assert [f.path for f in groups[1].files] == sorted(f.path for f in groups[1].files)

    def test_min_size_filter(self, grouped_index):
        groups = grouped_index.duplicate_groups(DuplicateQuery(min_size=1000))
        assert [g.hash for g in groups] == ["h2"]

    def test_search_filter_keeps_whole_group(self, grouped_index):
        """Search narrows rows before grouping; every member of a matching group is returned."""
        groups = grouped_index.duplicate_groups(DuplicateQuery(search="holiday"))

        assert len(groups) == 1
        assert len(groups[0].files) == 2

    def test_search_treats_wildcards_literally(self, grouped_index):
        assert grouped_index.duplicate_groups(DuplicateQuery(search="%")) == []

    def test_pagination(self, grouped_index):
        first = grouped_index.duplicate_groups(DuplicateQuery(limit=1, offset=0))
        second = grouped_index.duplicate_groups(DuplicateQuery(limit=1, offset=1))
        third = grouped_index.duplicate_groups(DuplicateQuery(limit=1, offset=2))

        assert [g.hash for g in first + second] == ["h1", "h2"]
        assert third == []

    def test_stats(self, grouped_index):
        stats = grouped_index.stats()

        assert stats.duplicate_sets == 2
        assert stats.duplicate_files == 5
        assert stats.wasted_bytes == 100 + 2 * 5000
        # {/x/holiday, /y/holiday} and {/x/work, /y/work, /z/work}
        assert stats.duplicate_folder_groups == 2


class TestDeletion:
    """Prefix deletion is separator-aware for both conventions."""

    def test_delete_by_prefix_does_not_touch_siblings(self, memory_index):
        memory_index.upsert_many([
            record("/a"), record("/a/1.txt"), record("/a/sub/2.txt"), record("/ab/3.txt"),
        ])

        deleted = memory_index.delete_by_prefix("/a")

        assert deleted == 3
        assert set(memory_index.diff_snapshot()) == {"/ab/3.txt"}

    def test_delete_by_prefix_with_backslashes(self, memory_index):
        memory_index.upsert_many([
            record("C:\\Photos\\1.jpg"), record("C:\\Photos2\\1.jpg"),
        ])

        memory_index.delete_by_prefix("C:\\Photos\\")

        assert set(memory_index.diff_snapshot()) == {"C:\\Photos2\\1.jpg"}

    def test_delete_by_paths(self, memory_index):
        memory_index.upsert_many([record("/a"), record("/b"), record("/c")])

        assert memory_index.delete_by_paths(["/a", "/c", "/missing"]) == 2
        assert set(memory_index.diff_snapshot()) == {"/b"}

    def test_clear(self, memory_index):
        memory_index.upsert_many([record("/a"), record("/b")])
        memory_index.clear()
        assert memory_index.count() == 0


class TestExcludedFolders:
    """Excluding a folder purges everything indexed below it."""

    def test_exclusion_cascade(self, memory_index):
        memory_index.upsert_many([
            record("/data/cache/x.bin"), record("/data/cache/deep/y.bin"), record("/data/cached.bin"),
        ])

        purged = memory_index.add_excluded_folder("/data/cache")

        assert purged == 2
        assert set(memory_index.diff_snapshot()) == {"/data/cached.bin"}
        assert [f.path for f in memory_index.get_excluded_folders()] == ["/data/cache"]

    def test_adding_twice_keeps_one_entry(self, memory_index):
        memory_index.add_excluded_folder("/data/cache")
        memory_index.add_excluded_folder("/data/cache/")

        assert len(memory_index.get_excluded_folders()) == 1

    def test_remove_excluded_folder(self, memory_index):
        memory_index.add_excluded_folder("/data/cache")

        assert memory_index.remove_excluded_folder("/data/cache") is True
        assert memory_index.remove_excluded_folder("/data/cache") is False
        assert memory_index.get_excluded_folders() == []


class TestHistory:
    """Quarantine history bookkeeping."""

    def test_history_entry_replaces_file_record(self, memory_index):
        memory_index.upsert_many([record("/a/1.txt")])
        file_id = _by_path(memory_index)["/a/1.txt"].id

        entry = memory_index.add_history_and_remove_file(file_id, "/a/1.txt", "/q/1.txt")

        assert entry.id is not None
        assert entry.timestamp is not None
        assert memory_index.count() == 0
        assert [h.original_path for h in memory_index.get_history()] == ["/a/1.txt"]

    def test_history_is_newest_first(self, memory_index):
        memory_index.upsert_many([record("/a"), record("/b")])
        files = _by_path(memory_index)
        first = memory_index.add_history_and_remove_file(files["/a"].id, "/a", "/q/a")
        second = memory_index.add_history_and_remove_file(files["/b"].id, "/b", "/q/b")

        assert [h.id for h in memory_index.get_history()] == [second.id, first.id]

    def test_get_history_by_ids_and_delete(self, memory_index):
        memory_index.upsert_many([record("/a")])
        entry = memory_index.add_history_and_remove_file(
            _by_path(memory_index)["/a"].id, "/a", "/q/a"
        )

        assert [h.id for h in memory_index.get_history([entry.id])] == [entry.id]
        assert memory_index.delete_history(entry.id) is True
        assert memory_index.delete_history(entry.id) is False
        assert memory_index.get_history() == []


class TestPersistence:
    """The index survives reopening and migrates legacy layouts."""

    def test_reopen_keeps_records(self, temp_dir):
        db_path = str(temp_dir / "state" / "index.db")
        with FileIndex(db_path) as first:
            first.upsert_many([record("/a/1.txt")])

        with FileIndex(db_path) as second:
            assert second.diff_snapshot() == {"/a/1.txt": (10, 1.0)}

    def test_legacy_files_table_is_recreated(self, temp_dir):
        """A files table without partial_hash predates tiered hashing and is rebuilt empty."""
        db_path = temp_dir / "legacy.db"
        conn = sqlite3.connect(str(db_path))
        conn.execute("CREATE TABLE files (id INTEGER PRIMARY KEY, path TEXT UNIQUE, size INTEGER, "
                     "mtime REAL, hash TEXT)")
        conn.execute("INSERT INTO files (path, size, mtime, hash) VALUES ('/old', 1, 1.0, 'x')")
        conn.commit()
        conn.close()

        with FileIndex(str(db_path)) as idx:
            assert idx.count() == 0
            idx.upsert_many([FileRecord(path="/new", size=1, mtime=1.0)])
            assert idx.candidates_by_size_collision() == []
            assert idx.count() == 1
