"""
Loguru setup for applications embedding diarysync.

The library itself only calls ``loguru.logger``; nothing is configured on
import. Call :func:`setup_logging` (or :func:`setup_logging_from_config`) once
at startup to pick the level and an optional rotating log file.
"""

import sys

from loguru import logger

from ..exceptions import ConfigurationError

CONSOLE_FORMAT = "<level>[{level.name}]</level> {name}: {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name} | {message}"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    fmt: str = CONSOLE_FORMAT,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """
    Replace loguru's sinks with stderr and, optionally, a rotating file.

    Args:
        level: Minimum level name, case-insensitive (DEBUG, INFO, WARNING, ...).
        log_file: File to append to; stderr only when None.
        fmt: Console format string.
        rotation: When to start a new log file.
        retention: How long rotated files are kept.

    Raises:
        ConfigurationError: *level* is not a loguru level.
    """
    level = str(level).upper()
    try:
        logger.level(level)
    except ValueError as e:
        raise ConfigurationError(f"Unknown log level {level!r}") from e

    logger.remove()
    logger.add(sys.stderr, level=level, format=fmt)
    if log_file:
        logger.add(log_file, level=level, format=FILE_FORMAT, rotation=rotation, retention=retention)


def setup_logging_from_config(config) -> None:
    """Apply the ``logging.level`` and ``logging.file`` settings of a Config."""
    setup_logging(level=config.get("logging.level", "WARNING"), log_file=config.get("logging.file") or None)
