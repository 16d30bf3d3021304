"""File logging for the session.

The terminal is in raw alternate-screen mode while the UI runs, so log records
go to a file only.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import ConfigurationError

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
PACKAGE_LOGGER = "infradeck"


def configure_logging(log_path: Path, level: str = "INFO") -> logging.Handler:
    """Attach a single file handler to the package logger and return it."""
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ConfigurationError(f"unknown log level: {level}")
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"error creating log file {log_path}: {exc}") from exc
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.addHandler(handler)
    logger.setLevel(numeric_level)
    logger.propagate = False
    return handler
