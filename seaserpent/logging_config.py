"""
Logging configuration for sea-serpent.

Quiet by default: only warnings and errors reach stderr. Every change to a
database is also recorded in that database's operations log.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "seaserpent"
OPS_LOG_FILENAME = "ops.log"

LOG_LEVELS = {
    "off": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}


def _stderr_handler() -> logging.Handler:
    """Return the stderr handler on the package logger, adding it if absent."""
    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in package_logger.handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(
            handler, logging.FileHandler
        ):
            return handler
    handler = logging.StreamHandler(sys.stderr)
    package_logger.addHandler(handler)
    return handler


def configure_quiet_mode(quiet: bool = True):
    """
    Configure console logging.

    Args:
        quiet: If True, show only warnings and errors. If False, show info.
    """
    level = logging.WARNING if quiet else logging.INFO
    handler = _stderr_handler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    if quiet:
        warnings.filterwarnings("ignore")


def set_log_level(name: str) -> None:
    """Set console verbosity from a level name (error, warn, info, debug...)."""
    try:
        level = LOG_LEVELS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown log level {name!r}. Use one of: {', '.join(LOG_LEVELS)}"
        ) from None
    if level <= logging.DEBUG:
        enable_debug_mode()
        return
    _stderr_handler().setLevel(level)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    warnings.filterwarnings("default")

    handler = _stderr_handler()
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    ))
    logging.getLogger(LOGGER_NAME).setLevel(logging.DEBUG)


def configure_ops_log(database_dir: Path) -> Optional[logging.Handler]:
    """Configure a persistent operations log for a database.

    Writes to {database_dir}/ops.log using a rotating file handler
    (1MB max, 3 backups). Always active regardless of --verbose.
    Returns the handler so it can be removed on close(), or None if the
    log file can't be opened.
    """
    log_path = Path(database_dir) / OPS_LOG_FILENAME
    try:
        handler = RotatingFileHandler(
            str(log_path),
            maxBytes=1_000_000,
            backupCount=3,
        )
    except OSError as e:
        logging.getLogger(__name__).warning("Can't open operations log %s: %s", log_path, e)
        return None
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    package_logger = logging.getLogger(LOGGER_NAME)
    package_logger.addHandler(handler)
    # Ensure the package logger lets INFO through even in quiet mode
    if package_logger.level == logging.NOTSET or package_logger.level > logging.INFO:
        package_logger.setLevel(logging.INFO)

    return handler


def remove_ops_log(handler: Optional[logging.Handler]) -> None:
    if handler is None:
        return
    logging.getLogger(LOGGER_NAME).removeHandler(handler)
    handler.close()
