"""
CLI interface for sea-serpent.

Usage:
    sea-serpent init
    sea-serpent add -t holiday -t year:2023 *.jpg
    sea-serpent search "holiday not year:2022"
    sea-serpent info photo.jpg
"""

import json
import os
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .database import (
    DATABASE_DIRNAME,
    Database,
    contains_database_dir,
    sort_by_attribute,
)
from .errors import SeaSerpentError
from .files import FileSearchSettings, FiletypeFilter, get_files
from .logging_config import configure_quiet_mode, enable_debug_mode, set_log_level
from .template import renamed_path
from .types import FileRecord


# Configure quiet mode by default
# Set SEASERPENT_VERBOSE=1 to enable debug mode via environment
if os.environ.get("SEASERPENT_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"sea-serpent {version('sea-serpent')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


def _log_level_callback(value: Optional[str]):
    if value is None:
        return value
    try:
        set_log_level(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    return value


# Global state for CLI options
_json_output = False
_database_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _database_callback(value: Optional[Path]):
    global _database_override
    _database_override = value


def _get_database_override() -> Optional[Path]:
    return _database_override


app = typer.Typer(
    name="sea-serpent",
    help="Tag files and find them again with boolean tag queries.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


# -----------------------------------------------------------------------------
# Output Formatting
#
# Three output formats:
#   default: one path per line
#   --info:  path, then "key: value" attribute lines, then "- tag" lines
#   --json:  list of {path, tags, attributes} objects
# -----------------------------------------------------------------------------

def _display_path(record: FileRecord, root: Optional[Path]) -> Path:
    return root / record.path if root is not None else record.path


def render_descriptive(record: FileRecord, root: Optional[Path] = None) -> str:
    """Path, attributes, then tags, followed by a blank line."""
    lines = [str(_display_path(record, root))]
    for key, value in sorted(record.attributes):
        lines.append(f"{key}: {value}")
    for tag in sorted(record.tags):
        lines.append(f"- {tag}")
    lines.append("")
    return "\n".join(lines)


def render_results(
    results: list[FileRecord],
    *,
    as_json: bool = False,
    info: bool = False,
    root: Optional[Path] = None,
) -> str:
    """
    Format records for display.

    Args:
        root: When given, paths are shown as absolute paths under it
    """
    if as_json:
        items = []
        for record in results:
            item = record.to_dict()
            item["path"] = str(_display_path(record, root))
            items.append(item)
        return json.dumps(items, indent=2)
    if info:
        return "\n".join(render_descriptive(record, root) for record in results)
    return "\n".join(str(_display_path(record, root)) for record in results)


def _echo_results(text: str) -> None:
    if text:
        typer.echo(text)


# -----------------------------------------------------------------------------
# Common Options
# -----------------------------------------------------------------------------

FilesArgument = Annotated[
    Optional[list[Path]],
    typer.Argument(help="Files to operate on", show_default=False),
]
FilesOption = Annotated[
    Optional[list[Path]],
    typer.Option("--files", "-f", help="Files to operate on (repeatable)"),
]
RecursiveOption = Annotated[
    bool,
    typer.Option("--recursive", "-r", help="Select files recursively through folders"),
]
ExcludeDirsOption = Annotated[
    bool, typer.Option("--exclude-dirs", help="Don't select directories"),
]
ExcludeFilesOption = Annotated[
    bool, typer.Option("--exclude-files", help="Don't select files"),
]
StdinOption = Annotated[
    bool, typer.Option("--stdin", help="Read file paths from stdin, one per line"),
]
TagsOption = Annotated[
    list[str],
    typer.Option("--tag", "-t", help="Tag, key:value attribute, or alias (repeatable)"),
]


def _select_files(
    files: Optional[list[Path]],
    file_opts: Optional[list[Path]],
    recursive: bool,
    exclude_dirs: bool,
    exclude_files: bool,
    stdin: bool,
) -> list[Path]:
    if exclude_dirs:
        filetype_filter = FiletypeFilter.FILES_ONLY
    elif exclude_files:
        filetype_filter = FiletypeFilter.FOLDERS_ONLY
    else:
        filetype_filter = FiletypeFilter.ALL
    settings = FileSearchSettings(
        recursive=recursive, stdin=stdin, filetype_filter=filetype_filter
    )
    selected = get_files([*(files or []), *(file_opts or [])], settings)
    if not selected:
        typer.echo("Error: No files selected", err=True)
        raise typer.Exit(1)
    return selected


def _database_dir_from_option(path: Path) -> Path:
    """Accept either the database root or its .sea-serpent directory."""
    if path.name != DATABASE_DIRNAME and contains_database_dir(path):
        return path / DATABASE_DIRNAME
    return path


def _get_database() -> Database:
    """Open the database, reporting failures as a clean error."""
    override = _get_database_override()
    try:
        if override is not None:
            return Database.load(_database_dir_from_option(override))
        return Database.load_from_current_dir()
    except SeaSerpentError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    log_level: Annotated[Optional[str], typer.Option(
        "--log-level", "-l",
        help="Logging level: off, error, warn, info, debug",
        callback=_log_level_callback,
        is_eager=True,
    )] = None,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    database: Annotated[Optional[Path], typer.Option(
        "--database", "-d",
        envvar="SEASERPENT_DIR",
        help="Database to use (default: nearest .sea-serpent above the current directory)",
        callback=_database_callback,
        is_eager=True,
    )] = None,
):
    """Tag files and find them again with boolean tag queries."""


@app.command()
def init():
    """Initialize a new database in the current directory."""
    try:
        db = Database.init(Path.cwd())
    except SeaSerpentError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    db.close()
    typer.echo("Created new database")


@app.command()
def add(
    tags: TagsOption,
    files: FilesArgument = None,
    file_opts: FilesOption = None,
    recursive: RecursiveOption = False,
    exclude_dirs: ExcludeDirsOption = False,
    exclude_files: ExcludeFilesOption = False,
    stdin: StdinOption = False,
):
    """
    Add tags to files.

    \b
    Examples:
        sea-serpent add -t holiday photo.jpg
        sea-serpent add -t year:2023 -r photos/
        find . -name '*.mp3' | sea-serpent add -t music --stdin
    """
    selected = _select_files(files, file_opts, recursive, exclude_dirs, exclude_files, stdin)
    failed = False
    with _get_database() as db:
        for file in selected:
            try:
                for tag in tags:
                    db.add_tag(file, tag)
            except SeaSerpentError as e:
                typer.echo(f"Error: {e}", err=True)
                failed = True
    if failed:
        raise typer.Exit(1)


@app.command()
def remove(
    tags: TagsOption,
    files: FilesArgument = None,
    file_opts: FilesOption = None,
    recursive: RecursiveOption = False,
    exclude_dirs: ExcludeDirsOption = False,
    exclude_files: ExcludeFilesOption = False,
    stdin: StdinOption = False,
):
    """Remove tags from files."""
    selected = _select_files(files, file_opts, recursive, exclude_dirs, exclude_files, stdin)
    failed = False
    with _get_database() as db:
        for file in selected:
            try:
                for tag in tags:
                    db.remove_tag(file, tag)
            except SeaSerpentError as e:
                typer.echo(f"Error: {e}", err=True)
                failed = True
    if failed:
        raise typer.Exit(1)


@app.command()
def cleanup():
    """Remove missing files and disallowed tags from the database."""
    with _get_database() as db:
        stats = db.cleanup()
    typer.echo(
        f"Removed {stats.removed_files} missing file(s) "
        f"and {stats.removed_tags} disallowed tag(s)"
    )


@app.command()
def info(
    files: FilesArgument = None,
    file_opts: FilesOption = None,
    recursive: RecursiveOption = False,
    exclude_dirs: ExcludeDirsOption = False,
    exclude_files: ExcludeFilesOption = False,
    stdin: StdinOption = False,
):
    """Print the tags and attributes of files."""
    selected = _select_files(files, file_opts, recursive, exclude_dirs, exclude_files, stdin)
    results = []
    failed = False
    with _get_database() as db:
        for file in selected:
            try:
                results.append(db.get_file_info(file))
            except SeaSerpentError as e:
                typer.echo(f"Error: {e}", err=True)
                failed = True
    _echo_results(render_results(results, as_json=_get_json_output(), info=True))
    if failed:
        raise typer.Exit(1)


@app.command()
def rename(
    template: Annotated[str, typer.Option(
        "--template",
        help="New file name, with {key} replaced by attribute values",
    )],
    files: FilesArgument = None,
    file_opts: FilesOption = None,
    recursive: RecursiveOption = False,
    exclude_dirs: ExcludeDirsOption = False,
    exclude_files: ExcludeFilesOption = False,
    stdin: StdinOption = False,
):
    """
    Rename files from their attributes, keeping their tags.

    \b
    Examples:
        sea-serpent rename --template '{artist} - {track:02d} {title}.mp3' *.mp3
    """
    selected = _select_files(files, file_opts, recursive, exclude_dirs, exclude_files, stdin)
    failed = False
    with _get_database() as db:
        for file in selected:
            try:
                record = db.get_file_info(file)
                new_path = renamed_path(file, record, template)
                db.move_file(file, new_path)
            except SeaSerpentError as e:
                typer.echo(f"Error: {e}", err=True)
                failed = True
                continue
            typer.echo(f"Moved {file} to {new_path}")
    if failed:
        raise typer.Exit(1)


@app.command()
def search(
    terms: Annotated[Optional[list[str]], typer.Argument(
        help="Search query, e.g. 'photo year:2023 not (blurry, dark)'",
        show_default=False,
    )] = None,
    output_json: Annotated[bool, typer.Option(
        "--json", help="Print results as JSON",
    )] = False,
    info: Annotated[bool, typer.Option(
        "--info", help="Print tags and attributes of each file",
    )] = False,
    sort_by: Annotated[Optional[str], typer.Option(
        "--sort-by", help="Sort by the value of this attribute",
    )] = None,
    limit: Annotated[Optional[int], typer.Option(
        "--limit", "-n", min=0, help="Maximum number of results",
    )] = None,
    absolute_path: Annotated[bool, typer.Option(
        "--absolute-path", help="Print absolute paths instead of relative",
    )] = False,
):
    """
    Search for files in the database.

    Adjacent terms must all match; 'or' (or a comma) allows either side,
    'not' negates the next term, parentheses group, and key:value,
    key: and :value match attributes.
    """
    query = " ".join(terms or [])
    with _get_database() as db:
        try:
            results = db.search(query)
        except SeaSerpentError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1)
        root = db.root_dir if absolute_path else None

    if sort_by:
        results = sort_by_attribute(results, sort_by)
    if limit is not None:
        results = results[:limit]
    _echo_results(render_results(
        results,
        as_json=output_json or _get_json_output(),
        info=info,
        root=root,
    ))


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        database_dir = _get_database_override()
        if database_dir is not None:
            database_dir = _database_dir_from_option(database_dir)
        log_path = log_exception(e, context="sea-serpent CLI", database_dir=database_dir)
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
