"""
Select the files a command operates on.
"""

import enum
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, TextIO


class FiletypeFilter(enum.Enum):
    ALL = "all"
    FILES_ONLY = "files"
    FOLDERS_ONLY = "folders"

    def accepts(self, path: Path) -> bool:
        if self is FiletypeFilter.FILES_ONLY:
            return not path.is_dir()
        if self is FiletypeFilter.FOLDERS_ONLY:
            return path.is_dir()
        return True


@dataclass
class FileSearchSettings:
    recursive: bool = False
    stdin: bool = False
    filetype_filter: FiletypeFilter = FiletypeFilter.ALL


def read_paths(stream: TextIO) -> list[Path]:
    """One path per line; blank lines are skipped."""
    return [Path(line.rstrip("\r\n")) for line in stream if line.strip()]


def walk(start: Path) -> list[Path]:
    """``start`` followed by everything below it, sorted per directory.

    Symlinked directories are listed but not descended into.
    """
    output = [start]
    if start.is_dir() and not start.is_symlink():
        for entry in sorted(start.iterdir()):
            output.extend(walk(entry))
    return output


def get_files(
    paths: Iterable[Path],
    settings: Optional[FileSearchSettings] = None,
    stdin: Optional[TextIO] = None,
) -> list[Path]:
    """
    Expand the paths given on the command line into the files to operate on.

    Order is preserved and duplicates are dropped.
    """
    settings = settings or FileSearchSettings()
    selected = [Path(p) for p in paths]
    if settings.stdin:
        selected.extend(read_paths(stdin if stdin is not None else sys.stdin))

    if settings.recursive:
        expanded = []
        for path in selected:
            expanded.extend(walk(path))
        selected = expanded

    seen: set[Path] = set()
    result = []
    for path in selected:
        if path in seen or not settings.filetype_filter.accepts(path):
            continue
        seen.add(path)
        result.append(path)
    return result
