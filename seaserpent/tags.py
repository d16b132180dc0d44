"""
Tag policy: classify raw tag strings, expand aliases and apply the
whitelist/blacklist.

Policy only applies when tags are added. Removal expands aliases so that
removing an alias removes every tag it names, but it never filters.
"""

from .config import DatabaseConfig
from .types import ATTRIBUTE_SEPARATOR, Tag


def classify(raw: str) -> Tag:
    """Split ``raw`` on its first ':' into a key or key/value tag."""
    return Tag.parse(raw)


def expand(raw: str, config: DatabaseConfig) -> list[str]:
    """Replace an alias with the tags it names; other tags pass through."""
    alias = config.get_alias(raw)
    if alias is None:
        return [raw]
    return list(alias)


def is_allowed(tag: str, config: DatabaseConfig) -> bool:
    """Check a tag string against the whitelist and the blacklist."""
    return config.tag_allowed(tag)


def policy_name(tag: Tag) -> str:
    """The string the allow/deny lists are matched against.

    Attributes are governed by their key, written as "key:".
    """
    if tag.is_attribute:
        return f"{tag.key}{ATTRIBUTE_SEPARATOR}"
    return tag.key


def is_tag_allowed(tag: Tag, config: DatabaseConfig) -> bool:
    return is_allowed(policy_name(tag), config)


def tags_to_add(raw: str, config: DatabaseConfig) -> list[Tag]:
    """Expand, classify and filter ``raw`` for writing."""
    return [
        tag for tag in (classify(t) for t in expand(raw, config))
        if is_tag_allowed(tag, config)
    ]


def tags_to_remove(raw: str, config: DatabaseConfig) -> list[Tag]:
    return [classify(t) for t in expand(raw, config)]
