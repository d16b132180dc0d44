"""
Protocol definition for file index backends.

The Database façade only talks to its store through this interface, so a
backend can keep files, tags and attributes in any format as long as the
add/remove/search/move semantics hold.
"""

from pathlib import PurePath
from typing import Protocol, Union, runtime_checkable

from .parser import SearchExpression
from .types import FileRecord

PathLike = Union[str, PurePath]


@runtime_checkable
class FileStoreProtocol(Protocol):
    """
    Storage contract for the tag index.

    Implemented by:
    - FileStore (local SQLite)
    """

    # -- Write operations --

    def add_tag(self, path: PathLike, tag: str) -> None: ...

    def add_attribute(self, path: PathLike, key: str, value: str) -> None: ...

    def remove_tag(self, path: PathLike, tag: str) -> None: ...

    def remove_attribute(self, path: PathLike, key: str, value: str) -> None: ...

    def remove_file(self, path: PathLike) -> bool: ...

    def move_file(self, old_path: PathLike, new_path: PathLike) -> None: ...

    # -- Query operations --

    def get_file(self, path: PathLike) -> FileRecord: ...

    def get_all_files(self) -> list[FileRecord]: ...

    def search(self, expr: SearchExpression) -> list[FileRecord]: ...

    # -- Lifecycle --

    def close(self) -> None: ...
