"""
Error types and error logging for sea-serpent.

Every failure the engine can report derives from SeaSerpentError so the CLI
can show a clean message while full stack traces go to the error log.
"""

import enum
import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class SeaSerpentError(Exception):
    """Base class for all sea-serpent errors."""


# -----------------------------------------------------------------------------
# Not found
# -----------------------------------------------------------------------------

class NotFoundError(SeaSerpentError):
    """Something the operation needed does not exist."""


class DatabaseNotFoundError(NotFoundError):
    """No .sea-serpent directory in the start directory or any parent."""

    def __init__(self, start: Path):
        self.start = start
        super().__init__(f"Could not find any database from {start}")


class DataFileNotFoundError(NotFoundError):
    """The database directory exists but its data file does not."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Database file missing: {path}")


class FileNotInDatabaseError(NotFoundError):
    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Can't find file {path} in database")


class PathNotFoundError(NotFoundError):
    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Can't find file {path}")


class PathOutsideDatabaseError(NotFoundError):
    def __init__(self, path: Path, root: Path):
        self.path = path
        self.root = root
        super().__init__(f"{path} is not inside the database root {root}")


# -----------------------------------------------------------------------------
# Storage
# -----------------------------------------------------------------------------

class StorageIOError(SeaSerpentError):
    """Reading or writing the store (or a tracked file) failed."""


class MalformedDatabaseError(SeaSerpentError):
    """The persisted store exists but can't be opened or parsed."""


class ConfigError(SeaSerpentError):
    """The config file is not valid TOML or has values of the wrong type."""


class DatabaseExistsError(SeaSerpentError):
    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Can't create a database in {path}")


# -----------------------------------------------------------------------------
# Query syntax
# -----------------------------------------------------------------------------

class QuerySyntaxError(SeaSerpentError):
    """A search string failed to lex or parse."""


class LexError(QuerySyntaxError):
    pass


class ParseErrorKind(enum.Enum):
    UNEXPECTED_END_OF_INPUT = "Unexpected end of input"
    UNEXPECTED_TOKEN = "Unexpected token"


class ParseError(QuerySyntaxError):
    def __init__(self, kind: ParseErrorKind, token: Optional[object] = None):
        self.kind = kind
        self.token = token
        message = kind.value
        if token is not None:
            message += f": {token}"
        super().__init__(message)


class TemplateError(SeaSerpentError):
    """A rename template could not be applied to a file."""


# -----------------------------------------------------------------------------
# Error log
# -----------------------------------------------------------------------------

ERROR_LOG_FILENAME = "errors.log"


def _error_log_path(database_dir: Optional[Path] = None) -> Path:
    """Resolve error log path: inside the database if one is found, else home."""
    from .database import DATABASE_DIRNAME, contains_database_dir, find_database_dir

    if database_dir is None:
        env_dir = os.environ.get("SEASERPENT_DIR")
        if env_dir:
            database_dir = Path(env_dir)
            if database_dir.name != DATABASE_DIRNAME and contains_database_dir(database_dir):
                database_dir = database_dir / DATABASE_DIRNAME
    if database_dir is None:
        try:
            database_dir = find_database_dir()
        except (NotFoundError, OSError):
            database_dir = None
    if database_dir is not None and database_dir.is_dir():
        return database_dir / ERROR_LOG_FILENAME
    return Path.home() / ".sea-serpent-errors.log"


def log_exception(
    exc: Exception,
    context: str = "",
    database_dir: Optional[Path] = None,
) -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)
        database_dir: Database directory to log into, when known

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path(database_dir)
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Error log is best effort
    return log_path
