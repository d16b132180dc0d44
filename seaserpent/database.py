"""
Tag database: ties the file index, the tag policy and the query language
to a directory tree.

A database lives in a ``.sea-serpent`` directory. The directory holding it
is the database root, and every file is stored by its path relative to
that root.

Example:
    db = Database.load_from_current_dir()
    db.add_tag(Path("holiday.jpg"), "year:2023")
    results = db.search("year:2023 not blurry")
"""

import logging
import os
from pathlib import Path
from typing import NamedTuple, Optional, Union

from .backend import create_store
from .config import DatabaseConfig, load_config, save_config
from .errors import (
    DatabaseExistsError,
    DatabaseNotFoundError,
    PathNotFoundError,
    PathOutsideDatabaseError,
    StorageIOError,
)
from .logging_config import configure_ops_log, remove_ops_log
from .parser import SearchExpression
from .protocol import FileStoreProtocol
from .query import parse
from .tags import is_tag_allowed, tags_to_add, tags_to_remove
from .types import FileRecord, Tag

logger = logging.getLogger(__name__)

DATABASE_DIRNAME = ".sea-serpent"


# -----------------------------------------------------------------------------
# Locating databases
# -----------------------------------------------------------------------------

def contains_database_dir(path: Path) -> bool:
    """Return True if ``path`` contains a database directory."""
    return (path / DATABASE_DIRNAME).is_dir()


def find_database_dir(start: Optional[Path] = None) -> Path:
    """
    Return the database directory in ``start`` or its nearest ancestor.

    Args:
        start: Directory to search from (default: current directory)

    Raises:
        DatabaseNotFoundError: If no ancestor holds a database
    """
    start = Path(start) if start is not None else Path.cwd()
    start = start.resolve()
    for candidate in (start, *start.parents):
        if contains_database_dir(candidate):
            return candidate / DATABASE_DIRNAME
    raise DatabaseNotFoundError(start)


def path_relative_to_root(path: Path, root: Path) -> Path:
    """
    Canonical path of an existing file, relative to the database root.

    Symlinks are resolved, so a link and its target are the same file.

    Raises:
        PathNotFoundError: If ``path`` does not exist
        PathOutsideDatabaseError: If ``path`` is not under ``root``
    """
    try:
        resolved = Path(path).resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise PathNotFoundError(Path(path)) from e
    try:
        return resolved.relative_to(root)
    except ValueError:
        raise PathOutsideDatabaseError(resolved, root) from None


class CleanupStats(NamedTuple):
    removed_files: int
    removed_tags: int


def sort_by_attribute(results: list[FileRecord], key: str) -> list[FileRecord]:
    """
    Sort results by the smallest value of attribute ``key``.

    Files without the attribute come first. The sort is stable, so files
    with equal values keep their path order.
    """
    def sort_key(record: FileRecord):
        value = record.first_attribute(key)
        return (value is not None, value or "")

    return sorted(results, key=sort_key)


# -----------------------------------------------------------------------------
# Database
# -----------------------------------------------------------------------------

class Database:
    """
    A tag database rooted at the parent of its ``.sea-serpent`` directory.

    Tags are filtered and alias-expanded by the database config when added.
    Removal expands aliases but never filters.
    """

    def __init__(
        self,
        database_dir: Path,
        *,
        config: Optional[DatabaseConfig] = None,
        store: Optional[FileStoreProtocol] = None,
        ops_log: bool = True,
    ) -> None:
        """
        Args:
            database_dir: The ``.sea-serpent`` directory
            config: Tag policy (loaded from the directory if not given)
            store: Injected file index (opened from the directory if not given)
            ops_log: Record changes in the database's operations log
        """
        self._path = Path(database_dir).resolve()
        self._config = config if config is not None else load_config(self._path)
        self._store = store if store is not None else create_store(self._path)
        self._ops_log_handler = configure_ops_log(self._path) if ops_log else None

    @classmethod
    def init(cls, directory: Path, **kwargs) -> "Database":
        """
        Create a new database in ``directory``.

        Raises:
            DatabaseExistsError: If ``directory`` is not a directory or
                already holds a database
        """
        directory = Path(directory)
        if not directory.is_dir() or contains_database_dir(directory):
            raise DatabaseExistsError(directory)
        database_dir = directory / DATABASE_DIRNAME
        try:
            database_dir.mkdir()
        except OSError as e:
            raise StorageIOError(f"Can't create {database_dir}: {e}") from e
        config = DatabaseConfig()
        save_config(database_dir, config)
        store = create_store(database_dir, create=True)
        logger.info("Created new database in %s", directory.resolve())
        return cls(database_dir, config=config, store=store, **kwargs)

    @classmethod
    def load(cls, database_dir: Path, backend: Optional[str] = None, **kwargs) -> "Database":
        """
        Open an existing database directory.

        Raises:
            DatabaseNotFoundError: If ``database_dir`` does not exist
            DataFileNotFoundError: If the directory has no data file
            MalformedDatabaseError: If the data file can't be read
            ConfigError: If the config file is invalid
        """
        database_dir = Path(database_dir)
        logger.debug("Loading database from %s", database_dir)
        if not database_dir.is_dir():
            raise DatabaseNotFoundError(database_dir)
        config = load_config(database_dir)
        store = create_store(database_dir, backend)
        return cls(database_dir, config=config, store=store, **kwargs)

    @classmethod
    def load_from_current_dir(cls, start: Optional[Path] = None, **kwargs) -> "Database":
        """Load the database of the nearest ancestor that has one."""
        return cls.load(find_database_dir(start), **kwargs)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def path(self) -> Path:
        """The ``.sea-serpent`` directory."""
        return self._path

    @property
    def root_dir(self) -> Path:
        return self._path.parent

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    def relative_path(self, file: Union[str, Path]) -> Path:
        return path_relative_to_root(Path(file), self.root_dir)

    def absolute_path(self, record: FileRecord) -> Path:
        return self.root_dir / record.path

    # -------------------------------------------------------------------------
    # Tagging
    # -------------------------------------------------------------------------

    def _write_tag(self, relative: Path, tag: Tag) -> None:
        if tag.is_attribute:
            self._store.add_attribute(relative, tag.key, tag.value)
        else:
            self._store.add_tag(relative, tag.key)

    def _delete_tag(self, relative: Path, tag: Tag) -> None:
        if tag.is_attribute:
            self._store.remove_attribute(relative, tag.key, tag.value)
        else:
            self._store.remove_tag(relative, tag.key)

    def add_tag(self, file: Union[str, Path], tag: str) -> list[Tag]:
        """
        Add a tag (or the tags an alias names) to a file.

        Tags rejected by the whitelist/blacklist are skipped.

        Returns:
            The tags actually written
        """
        relative = self.relative_path(file)
        applied = tags_to_add(tag, self._config)
        if not applied:
            logger.warning("Tag %r is not allowed by the database config", tag)
        for new_tag in applied:
            self._write_tag(relative, new_tag)
            logger.info("Added %s to %s", new_tag, relative)
        return applied

    def remove_tag(self, file: Union[str, Path], tag: str) -> list[Tag]:
        """
        Remove a tag (or every tag an alias names) from a file.

        Returns:
            The tags that were removed if present
        """
        relative = self.relative_path(file)
        removed = tags_to_remove(tag, self._config)
        for old_tag in removed:
            self._delete_tag(relative, old_tag)
            logger.info("Removed %s from %s", old_tag, relative)
        return removed

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def search(self, query: Union[str, SearchExpression]) -> list[FileRecord]:
        """
        Find files matching a query string or a parsed expression.

        Returns:
            Matching records sorted by path

        Raises:
            QuerySyntaxError: If ``query`` is a string that doesn't parse
        """
        expression = parse(query) if isinstance(query, str) else query
        results = self._store.search(expression)
        return sorted(results, key=lambda record: record.path)

    def get_file_info(self, file: Union[str, Path]) -> FileRecord:
        """
        Tags and attributes of one file.

        Raises:
            FileNotInDatabaseError: If the file has no tags or attributes
        """
        return self._store.get_file(self.relative_path(file))

    def get_all_files(self) -> list[FileRecord]:
        return self._store.get_all_files()

    # -------------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------------

    def cleanup(self) -> CleanupStats:
        """
        Clean up the database:
        - Remove files from the database that no longer exist on disk
        - Remove tags and attributes the config no longer allows
        """
        removed_files = 0
        for record in self._store.get_all_files():
            if not self.absolute_path(record).exists():
                logger.info("Removing %s from database", record.path)
                self._store.remove_file(record.path)
                removed_files += 1

        removed_tags = 0
        for record in self._store.get_all_files():
            for tag in sorted(record.tags):
                if not is_tag_allowed(Tag(tag), self._config):
                    logger.info("Removing %s from %s", tag, record.path)
                    self._store.remove_tag(record.path, tag)
                    removed_tags += 1
            for key, value in list(record.attributes):
                if not is_tag_allowed(Tag(key, value), self._config):
                    logger.info("Removing %s:%s from %s", key, value, record.path)
                    self._store.remove_attribute(record.path, key, value)
                    removed_tags += 1

        return CleanupStats(removed_files=removed_files, removed_tags=removed_tags)

    def move_file(self, original: Union[str, Path], new: Union[str, Path]) -> Path:
        """
        Move a file on disk and carry its tags and attributes along.

        The file is renamed first; if that fails the database is untouched.
        A symlinked ``original`` moves the file it points to, since that is
        the file the database tracks.

        Returns:
            The new path relative to the database root

        Raises:
            FileNotInDatabaseError: If ``original`` is not in the database
            PathOutsideDatabaseError: If ``new`` is not under the root
            StorageIOError: If the rename fails
        """
        original_relative = self.relative_path(original)
        self._store.get_file(original_relative)
        source = self.root_dir / original_relative
        new = Path(new)
        # The rename replaces the entry named ``new``, so only its parent is resolved
        target = new.parent.resolve() / new.name
        try:
            new_relative = target.relative_to(self.root_dir)
        except ValueError:
            raise PathOutsideDatabaseError(target, self.root_dir) from None

        try:
            os.rename(source, target)
        except OSError as e:
            raise StorageIOError(f"Can't move {original} to {new}: {e}") from e

        self._store.move_file(original_relative, new_relative)
        logger.info("Moved %s to %s", original_relative, new_relative)
        return new_relative

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        self._store.close()
        remove_ops_log(self._ops_log_handler)
        self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
