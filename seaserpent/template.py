"""
Rename templates: build a new file name from a file's attributes.

``{key}`` is replaced with the value of attribute ``key`` (the smallest one
when the file has several). Format specs work as in ``str.format``. Values
are formatted as text, and as integers only when the spec needs a number,
so ``{track:02d}`` turns "7" into "07" while ``{title:s}`` keeps "1984".
``{{`` and ``}}`` are literal braces.
"""

import string
from pathlib import Path

from .errors import TemplateError
from .types import FileRecord

_formatter = string.Formatter()


def _format_value(value: str, spec: str) -> str:
    """Format ``value`` as text, or as an integer when only a number fits the spec."""
    try:
        return format(value, spec)
    except ValueError:
        if not value.strip().lstrip("+-").isdigit():
            raise
    return format(int(value), spec)


def format_record(record: FileRecord, template: str) -> str:
    """
    Fill ``template`` with the attributes of ``record``.

    Raises:
        TemplateError: On a malformed template, an attribute the file doesn't
            have, or a spec the value can't be formatted with
    """
    try:
        parsed = list(_formatter.parse(template))
    except ValueError as e:
        raise TemplateError(f"Invalid template {template!r}: {e}") from e

    parts = []
    for literal, field_name, spec, conversion in parsed:
        parts.append(literal)
        if field_name is None:
            continue
        if not field_name:
            raise TemplateError(f"Invalid template {template!r}: empty placeholder")
        value = record.first_attribute(field_name)
        if value is None:
            raise TemplateError(f"{record.path} has no attribute {field_name!r}")
        if conversion:
            value = _formatter.convert_field(value, conversion)
        try:
            parts.append(_format_value(value, spec))
        except ValueError as e:
            raise TemplateError(
                f"Can't format {field_name}={value!r} with {spec!r}: {e}"
            ) from e
    return "".join(parts)


def renamed_path(current: Path, record: FileRecord, template: str) -> Path:
    """The path ``current`` gets when renamed with ``template``.

    The result is relative to the directory the file is in.
    """
    return current.parent / format_record(record, template)
