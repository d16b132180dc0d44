"""
sea-serpent

Attach tags and key:value attributes to files, then find files with a small
boolean query language.

Quick Start:
    from seaserpent import Database

    db = Database.init(Path("~/photos").expanduser())
    db.add_tag(Path("~/photos/beach.jpg").expanduser(), "holiday")
    db.add_tag(Path("~/photos/beach.jpg").expanduser(), "year:2023")
    results = db.search("holiday year:2023")

CLI Usage:
    sea-serpent init
    sea-serpent add -t holiday -t year:2023 beach.jpg
    sea-serpent search "holiday, trip not year:2022"

Database:
    A .sea-serpent directory, found by searching the current directory and
    then each parent. It holds data.sqlite (the index), config.toml (tag
    whitelist, blacklist and aliases) and ops.log (operations log).

Environment Variables:
    SEASERPENT_DIR      - Use this database instead of searching for one
    SEASERPENT_VERBOSE  - Set to 1 for debug logging
    SEASERPENT_BACKEND  - Name of a registered storage backend
"""

from .config import DatabaseConfig
from .database import Database, find_database_dir, sort_by_attribute
from .errors import (
    NotFoundError,
    QuerySyntaxError,
    SeaSerpentError,
    StorageIOError,
)
from .evaluator import matches
from .query import parse
from .types import FileRecord, Tag

__all__ = [
    "Database",
    "DatabaseConfig",
    "FileRecord",
    "NotFoundError",
    "QuerySyntaxError",
    "SeaSerpentError",
    "StorageIOError",
    "Tag",
    "find_database_dir",
    "matches",
    "parse",
    "sort_by_attribute",
]
