"""Tests for the Database: locating, tagging, searching, cleanup, moves."""

from pathlib import Path

import pytest

from seaserpent.config import DatabaseConfig, save_config
from seaserpent.database import (
    DATABASE_DIRNAME,
    CleanupStats,
    Database,
    find_database_dir,
    sort_by_attribute,
)
from seaserpent.errors import (
    DatabaseExistsError,
    DatabaseNotFoundError,
    DataFileNotFoundError,
    FileNotInDatabaseError,
    PathNotFoundError,
    PathOutsideDatabaseError,
    QuerySyntaxError,
    StorageIOError,
)
from seaserpent.file_store import DATA_FILENAME
from seaserpent.logging_config import OPS_LOG_FILENAME
from seaserpent.types import FileRecord, Tag


def paths(records):
    return [str(r.path) for r in records]


class TestInitAndLoad:
    def test_init_creates_database(self, db, root):
        assert db.path == root / DATABASE_DIRNAME
        assert db.root_dir == root
        assert (db.path / DATA_FILENAME).is_file()
        assert (db.path / "config.toml").is_file()

    def test_init_twice(self, db, root):
        with pytest.raises(DatabaseExistsError):
            Database.init(root)

    def test_init_in_missing_directory(self, tmp_path):
        with pytest.raises(DatabaseExistsError):
            Database.init(tmp_path / "missing")

    def test_find_from_nested_directory(self, db, root):
        nested = root / "a" / "b"
        nested.mkdir(parents=True)
        assert find_database_dir(nested) == db.path

    def test_find_without_database(self, tmp_path):
        with pytest.raises(DatabaseNotFoundError):
            find_database_dir(tmp_path)

    def test_load_from_current_dir(self, db, root, monkeypatch):
        nested = root / "sub"
        nested.mkdir()
        monkeypatch.chdir(nested)
        with Database.load_from_current_dir(ops_log=False) as loaded:
            assert loaded.path == db.path

    def test_load_missing_directory(self, tmp_path):
        with pytest.raises(DatabaseNotFoundError):
            Database.load(tmp_path / DATABASE_DIRNAME)

    def test_load_without_data_file(self, root):
        (root / DATABASE_DIRNAME).mkdir()
        with pytest.raises(DataFileNotFoundError):
            Database.load(root / DATABASE_DIRNAME)

    def test_data_persists(self, db, make_file):
        a = make_file("a.txt")
        db.add_tag(a, "red")
        db.close()
        with Database.load(db.path, ops_log=False) as reopened:
            assert reopened.get_file_info(a).tags == {"red"}

    def test_load_reads_config(self, db, make_file):
        save_config(db.path, DatabaseConfig(blacklist=frozenset({"red"})))
        db.close()
        with Database.load(db.path, ops_log=False) as reopened:
            assert reopened.add_tag(make_file("a.txt"), "red") == []

    def test_changes_go_to_ops_log(self, db, make_file):
        db.add_tag(make_file("a.txt"), "red")
        log = (db.path / OPS_LOG_FILENAME).read_text()
        assert "Added red to a.txt" in log


class TestPaths:
    def test_path_is_stored_relative_to_root(self, db, make_file):
        db.add_tag(make_file("dir/a.txt"), "x")
        assert paths(db.get_all_files()) == [str(Path("dir") / "a.txt")]

    def test_relative_path_from_cwd(self, db, root, make_file, monkeypatch):
        make_file("dir/a.txt")
        monkeypatch.chdir(root / "dir")
        db.add_tag("a.txt", "x")
        assert db.get_file_info(root / "dir" / "a.txt").tags == {"x"}

    def test_missing_file(self, db, root):
        with pytest.raises(PathNotFoundError):
            db.add_tag(root / "nope.txt", "x")

    def test_file_outside_root(self, db, tmp_path):
        outside = tmp_path / "outside.txt"
        outside.write_text("")
        with pytest.raises(PathOutsideDatabaseError):
            db.add_tag(outside, "x")

    def test_symlink_is_the_same_file(self, db, root, make_file):
        target = make_file("a.txt")
        link = root / "link.txt"
        link.symlink_to(target)
        db.add_tag(link, "x")
        assert db.get_file_info(target).tags == {"x"}
        assert paths(db.get_all_files()) == ["a.txt"]

    def test_database_root_itself(self, db, root):
        db.add_tag(root, "top")
        assert paths(db.search("top")) == ["."]


class TestTagging:
    def test_add_and_describe(self, db, make_file):
        a = make_file("a.txt")
        assert db.add_tag(a, "red") == [Tag("red")]
        assert db.add_tag(a, "size:10") == [Tag("size", "10")]
        record = db.get_file_info(a)
        assert record.tags == {"red"}
        assert record.attributes == [("size", "10")]

    def test_describe_untagged_file(self, db, make_file):
        with pytest.raises(FileNotInDatabaseError):
            db.get_file_info(make_file("a.txt"))

    def test_alias_adds_every_target(self, make_db, make_file, mock_store):
        database = make_db(DatabaseConfig(aliases={"media": ("video", "year:2023")}), mock_store)
        database.add_tag(make_file("a.txt"), "media")
        assert mock_store.calls == [
            ("add_tag", "a.txt", "video"),
            ("add_attribute", "a.txt", "year", "2023"),
        ]

    def test_blacklisted_tag_is_skipped(self, make_db, make_file, mock_store):
        database = make_db(DatabaseConfig(blacklist=frozenset({"red"})), mock_store)
        assert database.add_tag(make_file("a.txt"), "red") == []
        assert mock_store.calls == []

    def test_whitelist_checks_attribute_keys(self, make_db, make_file, mock_store):
        database = make_db(DatabaseConfig(whitelist=frozenset({"size:"})), mock_store)
        a = make_file("a.txt")
        assert database.add_tag(a, "size:10") == [Tag("size", "10")]
        assert database.add_tag(a, "size") == []
        assert database.add_tag(a, "weight:1") == []

    def test_remove(self, db, make_file):
        a = make_file("a.txt")
        db.add_tag(a, "red")
        db.add_tag(a, "big")
        db.remove_tag(a, "red")
        assert db.get_file_info(a).tags == {"big"}

    def test_remove_attribute_pair(self, db, make_file):
        a = make_file("a.txt")
        db.add_tag(a, "color:red")
        db.add_tag(a, "color:blue")
        db.remove_tag(a, "color:red")
        assert db.get_file_info(a).attributes == [("color", "blue")]

    def test_remove_ignores_policy(self, make_db, make_file, mock_store):
        a = make_file("a.txt")
        mock_store.add_tag("a.txt", "red")
        database = make_db(DatabaseConfig(blacklist=frozenset({"red"})), mock_store)
        database.remove_tag(a, "red")
        assert ("remove_tag", "a.txt", "red") in mock_store.calls

    def test_remove_alias_removes_every_target(self, make_db, make_file, mock_store):
        database = make_db(DatabaseConfig(aliases={"media": ("video", "audio")}), mock_store)
        database.remove_tag(make_file("a.txt"), "media")
        assert mock_store.calls == [
            ("remove_tag", "a.txt", "video"),
            ("remove_tag", "a.txt", "audio"),
        ]

    def test_removing_last_tag_forgets_file(self, db, make_file):
        a = make_file("a.txt")
        db.add_tag(a, "red")
        db.remove_tag(a, "red")
        assert db.get_all_files() == []


class TestSearch:
    @pytest.fixture
    def tagged(self, db, make_file):
        db.add_tag(make_file("c.txt"), "red")
        db.add_tag(make_file("a.txt"), "red")
        db.add_tag(make_file("a.txt"), "year:2023")
        db.add_tag(make_file("b.txt"), "blue")
        return db

    def test_results_sorted_by_path(self, tagged):
        assert paths(tagged.search("red")) == ["a.txt", "c.txt"]

    def test_empty_query_returns_everything(self, tagged):
        assert paths(tagged.search("")) == ["a.txt", "b.txt", "c.txt"]

    def test_compound_query(self, tagged):
        assert paths(tagged.search("red not year:")) == ["c.txt"]
        assert paths(tagged.search("blue, year:2023")) == ["a.txt", "b.txt"]

    def test_syntax_error(self, tagged):
        with pytest.raises(QuerySyntaxError):
            tagged.search("(red")


class TestCleanup:
    def test_removes_missing_files(self, db, make_file):
        a = make_file("a.txt")
        b = make_file("b.txt")
        db.add_tag(a, "x")
        db.add_tag(b, "x")
        b.unlink()
        assert db.cleanup() == CleanupStats(removed_files=1, removed_tags=0)
        assert paths(db.get_all_files()) == ["a.txt"]

    def test_removes_disallowed_tags(self, make_db, make_file, mock_store):
        make_file("a.txt")
        mock_store.add_tag("a.txt", "keep")
        mock_store.add_tag("a.txt", "drop")
        mock_store.add_attribute("a.txt", "size", "1")
        mock_store.add_attribute("a.txt", "size", "2")
        database = make_db(DatabaseConfig(whitelist=frozenset({"keep"})), mock_store)
        assert database.cleanup() == CleanupStats(removed_files=0, removed_tags=3)
        assert mock_store.get_file("a.txt").tags == {"keep"}
        assert mock_store.get_file("a.txt").attributes == []

    def test_removes_disallowed_tags_from_sqlite_store(self, db, make_file):
        a = make_file("a.txt")
        b = make_file("b.txt")
        for tag in ("keep", "drop", "size:1"):
            db.add_tag(a, tag)
        db.add_tag(b, "drop")
        save_config(db.path, DatabaseConfig(whitelist=frozenset({"keep"})))
        db.close()
        with Database.load(db.path, ops_log=False) as reloaded:
            assert reloaded.cleanup() == CleanupStats(removed_files=0, removed_tags=3)
            record = reloaded.get_file_info(a)
            assert record.tags == {"keep"}
            assert record.attributes == []
            assert paths(reloaded.get_all_files()) == ["a.txt"]

    def test_nothing_to_do(self, db, make_file):
        db.add_tag(make_file("a.txt"), "x")
        assert db.cleanup() == CleanupStats(0, 0)


class TestMove:
    def test_move(self, db, root, make_file):
        a = make_file("a.txt")
        db.add_tag(a, "x")
        assert db.move_file(a, root / "b.txt") == Path("b.txt")
        assert not a.exists()
        assert (root / "b.txt").exists()
        assert paths(db.search("x")) == ["b.txt"]

    def test_failed_rename_leaves_database_untouched(self, db, root, make_file):
        a = make_file("a.txt")
        db.add_tag(a, "x")
        with pytest.raises(StorageIOError):
            db.move_file(a, root / "missing_dir" / "b.txt")
        assert a.exists()
        assert paths(db.search("x")) == ["a.txt"]

    def test_move_outside_root(self, db, tmp_path, make_file):
        a = make_file("a.txt")
        db.add_tag(a, "x")
        with pytest.raises(PathOutsideDatabaseError):
            db.move_file(a, tmp_path / "b.txt")
        assert a.exists()

    def test_move_untracked_file(self, db, root, make_file):
        a = make_file("a.txt")
        with pytest.raises(FileNotInDatabaseError):
            db.move_file(a, root / "b.txt")
        assert a.exists()

    def test_move_over_tagged_file(self, db, root, make_file):
        a = make_file("a.txt", "new")
        b = make_file("b.txt", "old")
        db.add_tag(a, "fresh")
        db.add_tag(b, "stale")
        db.move_file(a, b)
        assert b.read_text() == "new"
        assert db.get_file_info(b).tags == {"fresh"}
        assert len(db.get_all_files()) == 1

    def test_move_through_symlink_moves_tracked_file(self, db, root, make_file):
        target = make_file("a.txt", "data")
        link = root / "link.txt"
        link.symlink_to("a.txt")
        db.add_tag(link, "x")
        assert db.move_file(link, root / "b.txt") == Path("b.txt")
        assert (root / "b.txt").read_text() == "data"
        assert not (root / "b.txt").is_symlink()
        assert not target.exists()
        assert paths(db.search("x")) == ["b.txt"]

    def test_move_with_relative_target(self, db, root, make_file, monkeypatch):
        make_file("dir/a.txt")
        db.add_tag(root / "dir" / "a.txt", "x")
        monkeypatch.chdir(root / "dir")
        assert db.move_file("a.txt", "b.txt") == Path("dir") / "b.txt"
        assert (root / "dir" / "b.txt").exists()
        assert paths(db.search("x")) == [str(Path("dir") / "b.txt")]


def test_sort_by_attribute():
    records = [
        FileRecord(path=Path("a"), attributes=[("n", "2")]),
        FileRecord(path=Path("b")),
        FileRecord(path=Path("c"), attributes=[("n", "9"), ("n", "1")]),
        FileRecord(path=Path("d"), attributes=[("n", "2")]),
    ]
    assert paths(sort_by_attribute(records, "n")) == ["b", "c", "a", "d"]


def test_close_closes_store(make_db, mock_store):
    database = make_db(store=mock_store)
    database.close()
    assert mock_store.closed
