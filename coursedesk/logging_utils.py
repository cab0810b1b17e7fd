"""Centralized logging configuration for the CourseDesk service."""

from __future__ import annotations

import logging
from logging import Logger
from pathlib import Path
from typing import Iterable


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO, *, handlers: Iterable[logging.Handler] | None = None) -> Logger:
    """Configure the root logger, defaulting to a single stream handler."""

    logger = logging.getLogger()
    logger.setLevel(level)

    if handlers is None:
        handlers = [logging.StreamHandler()]

    for handler in handlers:
        if handler.formatter is None:
            handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        logger.addHandler(handler)

    return logger


def get_log_file_path(storage_root: Path) -> Path:
    """Return the default path for the service log file."""

    return storage_root / "coursedesk.log"


__all__ = ["configure_logging", "get_log_file_path", "DEFAULT_LOG_FORMAT"]
