"""
File index using SQLite.

The file store is the source of truth for:
- File identity (path relative to the database root)
- Tags (bare labels)
- Attributes (key/value pairs, several values per key allowed)

Files, tags and attributes live in three tables joined on a synthetic file
id. Tag and attribute rows cascade when their file row is deleted, so
renaming a file only touches one row.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path, PurePath
from typing import Iterator, Optional, Union

from .errors import FileNotInDatabaseError, MalformedDatabaseError, StorageIOError
from .evaluator import filter_records
from .parser import SearchExpression
from .types import FileRecord

logger = logging.getLogger(__name__)

# Name of the sqlite file inside the database directory
DATA_FILENAME = "data.sqlite"

# Bumped when the table layout changes (stored in PRAGMA user_version)
SCHEMA_VERSION = 1

MEMORY = ":memory:"


def _path_key(path: Union[str, PurePath]) -> str:
    """Stored form of a relative path (forward slashes on every platform)."""
    return PurePath(path).as_posix()


class FileStore:
    """
    SQLite-backed index of tagged files.

    All operations are addressed by the path relative to the database root.
    Adds are idempotent and removals of unknown files, tags or attributes
    are no-ops. A file entity that loses its last tag and attribute is
    dropped.
    """

    def __init__(self, store_path: Union[Path, str]):
        """
        Args:
            store_path: Path to SQLite database file, or ":memory:"
        """
        self._db_path = store_path
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self) -> None:
        """Open the SQLite database and create the tables if needed."""
        try:
            self._conn = sqlite3.connect(str(self._db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")

            version = self._conn.execute("PRAGMA user_version").fetchone()[0]
            if version > SCHEMA_VERSION:
                raise MalformedDatabaseError(
                    f"{self._db_path}: schema version {version} is newer "
                    f"than supported ({SCHEMA_VERSION})"
                )

            with self._conn:
                self._conn.execute("""
                    CREATE TABLE IF NOT EXISTS files (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        path TEXT NOT NULL UNIQUE
                    )
                """)
                self._conn.execute("""
                    CREATE TABLE IF NOT EXISTS tags (
                        file_id INTEGER NOT NULL
                            REFERENCES files(id) ON DELETE CASCADE,
                        tag TEXT NOT NULL,
                        PRIMARY KEY (file_id, tag)
                    )
                """)
                self._conn.execute("""
                    CREATE TABLE IF NOT EXISTS attributes (
                        file_id INTEGER NOT NULL
                            REFERENCES files(id) ON DELETE CASCADE,
                        attr_key TEXT NOT NULL,
                        attr_value TEXT NOT NULL,
                        PRIMARY KEY (file_id, attr_key, attr_value)
                    )
                """)
                # Index for tag lookups across files
                self._conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_tags_tag ON tags(tag)
                """)
                self._conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        except sqlite3.OperationalError as e:
            self.close()
            raise StorageIOError(f"Can't open {self._db_path}: {e}") from e
        except sqlite3.DatabaseError as e:
            self.close()
            raise MalformedDatabaseError(
                f"Database is not formatted correctly: {self._db_path}: {e}"
            ) from e
        except MalformedDatabaseError:
            self.close()
            raise

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        """One committed transaction; any sqlite failure surfaces as StorageIOError."""
        try:
            with self._conn:
                yield self._conn
        except sqlite3.Error as e:
            raise StorageIOError(f"Can't write to {self._db_path}: {e}") from e

    @contextmanager
    def _read(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
        except sqlite3.Error as e:
            raise StorageIOError(f"Can't read from {self._db_path}: {e}") from e

    # -------------------------------------------------------------------------
    # File Entities
    # -------------------------------------------------------------------------

    def _get_file_id(self, conn: sqlite3.Connection, path: str) -> Optional[int]:
        row = conn.execute(
            "SELECT id FROM files WHERE path = ?", (path,)
        ).fetchone()
        return row["id"] if row else None

    def _create_file(self, conn: sqlite3.Connection, path: str) -> int:
        """Return the id of ``path``, creating the file entity if unseen."""
        file_id = self._get_file_id(conn, path)
        if file_id is not None:
            return file_id
        cursor = conn.execute("INSERT INTO files (path) VALUES (?)", (path,))
        logger.debug("Created file entity %s", path)
        return cursor.lastrowid

    def _prune_if_empty(self, conn: sqlite3.Connection, file_id: int) -> None:
        conn.execute("""
            DELETE FROM files
            WHERE id = ?
              AND NOT EXISTS (SELECT 1 FROM tags WHERE file_id = ?)
              AND NOT EXISTS (SELECT 1 FROM attributes WHERE file_id = ?)
        """, (file_id, file_id, file_id))

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def add_tag(self, path: Union[str, PurePath], tag: str) -> None:
        """Add ``tag`` to ``path``. Adding an existing tag is a no-op."""
        key = _path_key(path)
        with self._write() as conn:
            file_id = self._create_file(conn, key)
            conn.execute(
                "INSERT OR IGNORE INTO tags (file_id, tag) VALUES (?, ?)",
                (file_id, tag),
            )

    def add_attribute(self, path: Union[str, PurePath], key: str, value: str) -> None:
        """Add the pair (key, value) to ``path``. Existing pairs are a no-op."""
        path_key = _path_key(path)
        with self._write() as conn:
            file_id = self._create_file(conn, path_key)
            conn.execute("""
                INSERT OR IGNORE INTO attributes (file_id, attr_key, attr_value)
                VALUES (?, ?, ?)
            """, (file_id, key, value))

    def remove_tag(self, path: Union[str, PurePath], tag: str) -> None:
        key = _path_key(path)
        with self._write() as conn:
            file_id = self._get_file_id(conn, key)
            if file_id is None:
                return
            conn.execute(
                "DELETE FROM tags WHERE file_id = ? AND tag = ?", (file_id, tag)
            )
            self._prune_if_empty(conn, file_id)

    def remove_attribute(self, path: Union[str, PurePath], key: str, value: str) -> None:
        path_key = _path_key(path)
        with self._write() as conn:
            file_id = self._get_file_id(conn, path_key)
            if file_id is None:
                return
            conn.execute("""
                DELETE FROM attributes
                WHERE file_id = ? AND attr_key = ? AND attr_value = ?
            """, (file_id, key, value))
            self._prune_if_empty(conn, file_id)

    def remove_file(self, path: Union[str, PurePath]) -> bool:
        """
        Remove a file with all its tags and attributes.

        Returns:
            True if the file was in the index
        """
        with self._write() as conn:
            cursor = conn.execute(
                "DELETE FROM files WHERE path = ?", (_path_key(path),)
            )
        return cursor.rowcount > 0

    def move_file(self, old_path: Union[str, PurePath], new_path: Union[str, PurePath]) -> None:
        """
        Move all data about ``old_path`` to ``new_path``.

        This does not touch the file on disk. Anything previously stored
        for ``new_path`` is replaced.

        Raises:
            FileNotInDatabaseError: If ``old_path`` is not in the index
        """
        old_key = _path_key(old_path)
        new_key = _path_key(new_path)
        with self._write() as conn:
            file_id = self._get_file_id(conn, old_key)
            if file_id is None:
                raise FileNotInDatabaseError(Path(old_key))
            if old_key == new_key:
                return
            conn.execute("DELETE FROM files WHERE path = ?", (new_key,))
            conn.execute(
                "UPDATE files SET path = ? WHERE id = ?", (new_key, file_id)
            )

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def _load_record(self, conn: sqlite3.Connection, file_id: int, path: str) -> FileRecord:
        tags = {
            row["tag"] for row in conn.execute(
                "SELECT tag FROM tags WHERE file_id = ?", (file_id,)
            )
        }
        attributes = [
            (row["attr_key"], row["attr_value"]) for row in conn.execute("""
                SELECT attr_key, attr_value FROM attributes
                WHERE file_id = ?
                ORDER BY attr_key, attr_value
            """, (file_id,))
        ]
        return FileRecord(path=Path(path), tags=tags, attributes=attributes)

    def get_file(self, path: Union[str, PurePath]) -> FileRecord:
        """
        Get tags and attributes of one file.

        Raises:
            FileNotInDatabaseError: If the file is not in the index
        """
        key = _path_key(path)
        with self._read() as conn:
            file_id = self._get_file_id(conn, key)
            if file_id is None:
                raise FileNotInDatabaseError(Path(key))
            return self._load_record(conn, file_id, key)

    def exists(self, path: Union[str, PurePath]) -> bool:
        with self._read() as conn:
            return self._get_file_id(conn, _path_key(path)) is not None

    def get_all_files(self) -> list[FileRecord]:
        """All files in the index, ordered by path."""
        with self._read() as conn:
            records: dict[int, FileRecord] = {}
            for row in conn.execute("SELECT id, path FROM files ORDER BY path"):
                records[row["id"]] = FileRecord(path=Path(row["path"]))
            for row in conn.execute("SELECT file_id, tag FROM tags"):
                records[row["file_id"]].tags.add(row["tag"])
            for row in conn.execute("""
                SELECT file_id, attr_key, attr_value FROM attributes
                ORDER BY attr_key, attr_value
            """):
                records[row["file_id"]].attributes.append(
                    (row["attr_key"], row["attr_value"])
                )
        return list(records.values())

    def search(self, expr: SearchExpression) -> list[FileRecord]:
        """Files matching ``expr`` (callers sort for display)."""
        return filter_records(self.get_all_files(), expr)

    def count(self) -> int:
        """Count files in the index."""
        with self._read() as conn:
            return conn.execute("SELECT COUNT(*) FROM files").fetchone()[0]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()
