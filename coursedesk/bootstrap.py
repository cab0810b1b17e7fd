"""Bootstrap logic that prepares runtime directories and the primary schema."""

from __future__ import annotations

import logging
from pathlib import Path

from . import config as config_module
from .config import AppConfig, load_config
from .services.primary import PrimaryUnavailableError, SQLiteRecordStore

LOGGER = logging.getLogger(__name__)


class BootstrapError(RuntimeError):
    """Raised when initialization cannot be completed."""


class Bootstrapper:
    """High level object orchestrating initialization steps."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    @property
    def config(self) -> AppConfig:
        return self._config

    def initialize(self) -> None:
        """Run all bootstrap tasks."""

        LOGGER.debug("Starting bootstrap sequence")
        self._ensure_directories()
        self._ensure_primary_schema()
        LOGGER.info("Bootstrap completed successfully")

    def _ensure_directories(self) -> None:
        directories = (
            ("storage", self._config.storage_root),
            ("journal", self._config.journal_root),
            ("upload", self._config.upload_root),
        )
        for label, path in directories:
            if not config_module._ensure_writable_directory(path):
                raise BootstrapError(f"The {label} directory '{path}' is not writable.")
            LOGGER.debug("Ensured directory exists: %s", path)

    def _ensure_primary_schema(self) -> None:
        # An unreachable primary store is not fatal: the journal takes over
        # and the connectivity monitor keeps retrying.
        store = SQLiteRecordStore(
            self._config.database_file,
            connect_timeout=self._config.connect_timeout_seconds,
        )
        try:
            store.connect()
        except PrimaryUnavailableError as error:
            LOGGER.warning("Primary schema could not be prepared: %s", error)
        else:
            LOGGER.debug("Ensured primary schema at %s", self._config.database_file)


def initialize_app(config_path: Path | None = None) -> AppConfig:
    """Convenience helper that loads configuration and runs initialization."""

    config = load_config(config_path=config_path)
    bootstrapper = Bootstrapper(config)
    bootstrapper.initialize()
    return config


__all__ = ["BootstrapError", "Bootstrapper", "initialize_app"]
