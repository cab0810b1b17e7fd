"""Wiring of the primary store, journal, monitor and the services built on them."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..config import AppConfig
from .coordinator import WriteCoordinator, resolve_schema
from .journal import FallbackJournal
from .monitor import ConnectivityMonitor, TimerFactory
from .primary import PrimaryUnavailableError, SQLiteRecordStore
from .reconciler import ReadReconciler
from .records import CollectionSchema, NotFoundError
from .submissions import SubmissionService
from .uploads import remove_upload


LOGGER = logging.getLogger(__name__)


class PersistenceLayer:
    """Single entry point used by the web layer and the CLI."""

    def __init__(
        self,
        config: AppConfig,
        *,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self.config = config
        self.store = SQLiteRecordStore(
            config.database_file,
            connect_timeout=config.connect_timeout_seconds,
        )
        self.monitor = ConnectivityMonitor(
            self.store,
            reconnect_interval=config.reconnect_interval_seconds,
            timer_factory=timer_factory,
        )
        self.journal = FallbackJournal(config.journal_root)
        self.writer = WriteCoordinator(self.store, self.journal, self.monitor)
        self.reader = ReadReconciler(self.store, self.journal, self.monitor)
        self.submissions = SubmissionService(self.store, self.monitor)

    def start(self) -> bool:
        return self.monitor.start()

    def stop(self) -> None:
        self.monitor.stop()

    def delete(self, collection: str | CollectionSchema, record_id: str) -> Dict[str, Any]:
        """Remove a record from the primary store together with its uploaded file.

        The journal is append-only and keeps its copy.
        """

        schema = resolve_schema(collection)
        if not self.monitor.is_reachable():
            raise PrimaryUnavailableError("Primary store is unavailable")
        document = self.store.find_one(schema, record_id)
        if document is None:
            raise NotFoundError(f"Record {record_id} not found in {schema.name}")
        self.store.delete(schema, record_id)
        remove_upload(self.config.upload_root, document.get("fileName"))
        LOGGER.info("Deleted %s record %s", schema.name, record_id)
        return document


__all__ = ["PersistenceLayer"]
