"""Read path: primary store, then journal, then placeholders."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Mapping, Optional

from .coordinator import resolve_schema
from .journal import FallbackJournal
from .monitor import ConnectivityMonitor
from .placeholders import placeholder_records
from .primary import PrimaryError, SQLiteRecordStore
from .records import CollectionSchema


LOGGER = logging.getLogger(__name__)

DataSource = Literal["primary", "journal", "placeholder"]


@dataclass
class ReadResult:
    """Records returned by a read, tagged with the tier that produced them."""

    source: DataSource
    records: List[Dict[str, Any]]

    @property
    def degraded(self) -> bool:
        return self.source != "primary"


def _with_id(document: Mapping[str, Any]) -> Dict[str, Any]:
    normalized = dict(document)
    if normalized.get("id") is None and normalized.get("_id") is not None:
        normalized["id"] = str(normalized.pop("_id"))
    return normalized


class ReadReconciler:
    def __init__(
        self,
        store: SQLiteRecordStore,
        journal: FallbackJournal,
        monitor: ConnectivityMonitor,
    ) -> None:
        self._store = store
        self._journal = journal
        self._monitor = monitor

    def _read_primary(self, schema: CollectionSchema) -> List[Dict[str, Any]]:
        if not self._monitor.is_reachable():
            return []
        try:
            records = self._store.find_sorted(schema, schema.sort_field, descending=True)
        except PrimaryError as error:
            LOGGER.error("Reading %s from primary store failed: %s", schema.name, error)
            return []
        LOGGER.debug("Retrieved %s %s record(s) from primary store", len(records), schema.name)
        return records

    def _read_journal(self, schema: CollectionSchema) -> List[Dict[str, Any]]:
        if not schema.journaled:
            return []
        return [_with_id(entry) for entry in self._journal.read_all(schema)]

    def read_all(self, collection: str | CollectionSchema) -> ReadResult:
        """Return the first non-empty tier for *collection*.

        Primary results come most-recent-first; journal results keep their
        insertion order. The tiers are never merged.
        """

        schema = resolve_schema(collection)

        records = self._read_primary(schema)
        if records:
            return ReadResult(source="primary", records=records)

        records = self._read_journal(schema)
        if records:
            LOGGER.info("Serving %s %s record(s) from the journal", len(records), schema.name)
            return ReadResult(source="journal", records=records)

        LOGGER.warning("No %s records in either store; serving placeholders", schema.name)
        return ReadResult(source="placeholder", records=placeholder_records(schema))

    def find(self, collection: str | CollectionSchema, record_id: str) -> Optional[Dict[str, Any]]:
        """Return a single record by id from the primary store or the journal."""

        schema = resolve_schema(collection)
        if self._monitor.is_reachable():
            try:
                document = self._store.find_one(schema, record_id)
            except PrimaryError as error:
                LOGGER.error("Looking up %s %s in primary store failed: %s", schema.name, record_id, error)
            else:
                if document is not None:
                    return document

        match: Optional[Dict[str, Any]] = None
        for entry in self._read_journal(schema):
            if str(entry.get("id")) == str(record_id):
                match = entry
        return match


__all__ = ["DataSource", "ReadReconciler", "ReadResult"]
