"""
Configuration management for sea-serpent databases.

The configuration is stored as a TOML file in the database directory.
It holds the tag policy: an optional whitelist, an optional blacklist,
and aliases that expand to concrete tags when tags are added.

    whitelist = ["photo", "year:"]
    blacklist = ["tmp"]

    [aliases]
    media = ["video", "audio"]
"""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import tomli_w

from .errors import ConfigError


CONFIG_FILENAME = "config.toml"
CONFIG_VERSION = 1


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Tag policy for one database.

    Built once when the database is loaded and never changed afterwards.
    ``None`` for a list means the list is not in effect.
    """
    whitelist: Optional[frozenset[str]] = None
    blacklist: Optional[frozenset[str]] = None
    aliases: dict[str, tuple[str, ...]] = field(default_factory=dict)
    version: int = CONFIG_VERSION

    def get_alias(self, name: str) -> Optional[tuple[str, ...]]:
        return self.aliases.get(name)

    def tag_allowed(self, tag: str) -> bool:
        if self.whitelist is not None and tag not in self.whitelist:
            return False
        if self.blacklist is not None and tag in self.blacklist:
            return False
        return True


def _string_list(data: dict, key: str, config_path: Path) -> Optional[frozenset[str]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{config_path}: '{key}' must be a list of strings")
    return frozenset(value)


def _parse_aliases(data: dict, config_path: Path) -> dict[str, tuple[str, ...]]:
    section = data.get("aliases", {})
    if not isinstance(section, dict):
        raise ConfigError(f"{config_path}: 'aliases' must be a table")
    aliases = {}
    for name, tags in section.items():
        if isinstance(tags, str):
            tags = [tags]
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise ConfigError(f"{config_path}: alias '{name}' must be a list of strings")
        aliases[name] = tuple(tags)
    return aliases


def load_config(database_dir: Path) -> DatabaseConfig:
    """
    Load configuration from a database directory.

    A missing config file gives the default (everything allowed, no aliases).

    Raises:
        ConfigError: If the file is not valid TOML or values have wrong types
    """
    config_path = database_dir / CONFIG_FILENAME

    if not config_path.exists():
        return DatabaseConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"{config_path}: {e}") from e

    # Validate version
    version = data.get("version", CONFIG_VERSION)
    if not isinstance(version, int) or version > CONFIG_VERSION:
        raise ConfigError(
            f"Config version {version!r} is newer than supported ({CONFIG_VERSION})"
        )

    return DatabaseConfig(
        whitelist=_string_list(data, "whitelist", config_path),
        blacklist=_string_list(data, "blacklist", config_path),
        aliases=_parse_aliases(data, config_path),
        version=version,
    )


def config_to_dict(config: DatabaseConfig) -> dict[str, Any]:
    data: dict[str, Any] = {"version": config.version}
    if config.whitelist is not None:
        data["whitelist"] = sorted(config.whitelist)
    if config.blacklist is not None:
        data["blacklist"] = sorted(config.blacklist)
    data["aliases"] = {name: list(tags) for name, tags in config.aliases.items()}
    return data


def save_config(database_dir: Path, config: DatabaseConfig) -> Path:
    """
    Save configuration to the database directory.

    Creates the directory if it doesn't exist.
    """
    database_dir.mkdir(parents=True, exist_ok=True)
    config_path = database_dir / CONFIG_FILENAME
    with open(config_path, "wb") as f:
        tomli_w.dump(config_to_dict(config), f)
    return config_path
