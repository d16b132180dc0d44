"""
Data types for tagged files.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Separates key and value in a raw tag string ("key:value")
ATTRIBUTE_SEPARATOR = ":"


@dataclass(frozen=True)
class Tag:
    """
    A tag as given by the user: a bare key or a key/value attribute.

    Only the first separator splits, so "url:http://x" has key "url"
    and value "http://x".
    """
    key: str
    value: Optional[str] = None

    @classmethod
    def parse(cls, raw: str) -> "Tag":
        if ATTRIBUTE_SEPARATOR not in raw:
            return cls(raw)
        key, value = raw.split(ATTRIBUTE_SEPARATOR, 1)
        return cls(key, value)

    @property
    def is_attribute(self) -> bool:
        return self.value is not None

    def __str__(self) -> str:
        if self.value is None:
            return self.key
        return f"{self.key}{ATTRIBUTE_SEPARATOR}{self.value}"


@dataclass
class FileRecord:
    """
    Tags and attributes stored for one file.

    ``path`` is relative to the database root.
    """
    path: Path
    tags: set[str] = field(default_factory=set)
    attributes: list[tuple[str, str]] = field(default_factory=list)

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags

    def has_attribute(self, key: Optional[str], value: Optional[str]) -> bool:
        """Check for an attribute; None on either side matches anything."""
        for k, v in self.attributes:
            if key is not None and k != key:
                continue
            if value is not None and v != value:
                continue
            return True
        # No attributes at all still satisfies a fully wildcarded query
        return key is None and value is None

    def attribute_values(self, key: str) -> list[str]:
        """Sorted values stored under ``key``."""
        return sorted(v for k, v in self.attributes if k == key)

    def first_attribute(self, key: str) -> Optional[str]:
        values = self.attribute_values(key)
        return values[0] if values else None

    @property
    def is_empty(self) -> bool:
        return not self.tags and not self.attributes

    def to_dict(self) -> dict:
        """JSON-friendly representation (tags sorted, attributes as pairs)."""
        return {
            "path": str(self.path),
            "tags": sorted(self.tags),
            "attributes": [[k, v] for k, v in sorted(self.attributes)],
        }
