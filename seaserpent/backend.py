"""
Pluggable storage backend factory.

Opens the file index for a database directory. The local backend is the
SQLite FileStore. External backends register via the
``seaserpent.backends`` entry point group and provide a factory function::

    def create_store(database_dir: Path) -> FileStoreProtocol:
        ...

registered in their pyproject.toml::

    [project.entry-points."seaserpent.backends"]
    my-backend = "my_package.backend:create_store"
"""

import os
from pathlib import Path
from typing import Optional

from .errors import DataFileNotFoundError, SeaSerpentError
from .protocol import FileStoreProtocol

# Environment variable selecting a registered backend
BACKEND_ENV = "SEASERPENT_BACKEND"
LOCAL_BACKEND = "local"


def create_store(
    database_dir: Path,
    backend: Optional[str] = None,
    *,
    create: bool = False,
) -> FileStoreProtocol:
    """
    Open the file index of a database directory.

    For the local backend (default), opens ``data.sqlite`` in the database
    directory. Unless ``create`` is set, a missing data file is reported
    rather than silently recreated.

    Raises:
        DataFileNotFoundError: If the data file is missing
        SeaSerpentError: If the named backend is not registered
    """
    backend = backend or os.environ.get(BACKEND_ENV) or LOCAL_BACKEND
    if backend == LOCAL_BACKEND:
        return _create_local_store(database_dir, create=create)
    return _load_backend(backend, database_dir)


def _create_local_store(database_dir: Path, *, create: bool) -> FileStoreProtocol:
    from .file_store import DATA_FILENAME, FileStore

    data_path = database_dir / DATA_FILENAME
    if not create and not data_path.is_file():
        raise DataFileNotFoundError(data_path)
    return FileStore(data_path)


def _load_backend(name: str, database_dir: Path) -> FileStoreProtocol:
    """Load a backend by entry point name."""
    from importlib.metadata import entry_points

    eps = entry_points(group="seaserpent.backends")
    for ep in eps:
        if ep.name == name:
            factory = ep.load()
            return factory(database_dir)

    available = [ep.name for ep in eps]
    if available:
        raise SeaSerpentError(
            f"Unknown backend: {name!r}. Available: {[LOCAL_BACKEND] + available}"
        )
    raise SeaSerpentError(
        f"Unknown backend: {name!r}. No backends registered besides {LOCAL_BACKEND!r}."
    )
