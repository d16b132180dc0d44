"""
Shared pytest fixtures for sea-serpent tests.

Provides an in-memory file store and databases rooted in tmp_path.
"""

from pathlib import Path, PurePath

import pytest

from seaserpent.config import DatabaseConfig
from seaserpent.database import DATABASE_DIRNAME, Database
from seaserpent.errors import FileNotInDatabaseError
from seaserpent.evaluator import filter_records
from seaserpent.file_store import FileStore
from seaserpent.types import FileRecord


class MockFileStore:
    """
    Dict-backed file store for testing the database layer without SQLite.

    Records every call so tests can check what reached the store.
    """

    def __init__(self):
        self._files: dict[str, FileRecord] = {}
        self.calls: list[tuple] = []
        self.closed = False

    def _record(self, path) -> FileRecord:
        key = PurePath(path).as_posix()
        if key not in self._files:
            self._files[key] = FileRecord(path=Path(key))
        return self._files[key]

    def _prune(self, path) -> None:
        key = PurePath(path).as_posix()
        if key in self._files and self._files[key].is_empty:
            del self._files[key]

    def add_tag(self, path, tag: str) -> None:
        self.calls.append(("add_tag", str(path), tag))
        self._record(path).tags.add(tag)

    def add_attribute(self, path, key: str, value: str) -> None:
        self.calls.append(("add_attribute", str(path), key, value))
        record = self._record(path)
        if (key, value) not in record.attributes:
            record.attributes.append((key, value))

    def remove_tag(self, path, tag: str) -> None:
        self.calls.append(("remove_tag", str(path), tag))
        record = self._files.get(PurePath(path).as_posix())
        if record is not None:
            record.tags.discard(tag)
            self._prune(path)

    def remove_attribute(self, path, key: str, value: str) -> None:
        self.calls.append(("remove_attribute", str(path), key, value))
        record = self._files.get(PurePath(path).as_posix())
        if record is not None and (key, value) in record.attributes:
            record.attributes.remove((key, value))
            self._prune(path)

    def remove_file(self, path) -> bool:
        self.calls.append(("remove_file", str(path)))
        return self._files.pop(PurePath(path).as_posix(), None) is not None

    def move_file(self, old_path, new_path) -> None:
        self.calls.append(("move_file", str(old_path), str(new_path)))
        old_key = PurePath(old_path).as_posix()
        if old_key not in self._files:
            raise FileNotInDatabaseError(Path(old_key))
        record = self._files.pop(old_key)
        record.path = Path(PurePath(new_path).as_posix())
        self._files[record.path.as_posix()] = record

    def get_file(self, path) -> FileRecord:
        key = PurePath(path).as_posix()
        if key not in self._files:
            raise FileNotInDatabaseError(Path(key))
        return self._files[key]

    def get_all_files(self) -> list[FileRecord]:
        return [self._files[k] for k in sorted(self._files)]

    def search(self, expr) -> list[FileRecord]:
        return filter_records(self.get_all_files(), expr)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def store():
    """A fresh in-memory SQLite FileStore."""
    file_store = FileStore(":memory:")
    yield file_store
    file_store.close()


@pytest.fixture
def mock_store():
    return MockFileStore()


@pytest.fixture
def root(tmp_path):
    """Empty directory to hold a database (resolved, so symlinked tmp dirs compare equal)."""
    root_dir = tmp_path / "root"
    root_dir.mkdir()
    return root_dir.resolve()


@pytest.fixture
def db(root):
    """A freshly initialised database in ``root``."""
    database = Database.init(root)
    yield database
    database.close()


@pytest.fixture
def make_file(root):
    """Create a file (and its parent dirs) under the database root."""
    def _make(name: str, content: str = "") -> Path:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path
    return _make


@pytest.fixture
def make_db(root):
    """Open a database over ``root`` with a given config and a mock store."""
    opened = []

    def _make(config: DatabaseConfig = None, store=None) -> Database:
        database_dir = root / DATABASE_DIRNAME
        database_dir.mkdir(exist_ok=True)
        database = Database(
            database_dir,
            config=config or DatabaseConfig(),
            store=store if store is not None else MockFileStore(),
            ops_log=False,
        )
        opened.append(database)
        return database

    yield _make
    for database in opened:
        database.close()
