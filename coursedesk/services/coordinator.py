"""Dual-write coordination between the primary store and the journal."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .journal import FallbackJournal
from .monitor import ConnectivityMonitor
from .primary import PrimaryError, SQLiteRecordStore
from .records import CollectionSchema, ValidationError, get_schema


LOGGER = logging.getLogger(__name__)

JOURNAL_ONLY_NOTE = (
    "The record was saved to the fallback journal but could not be recorded "
    "in the database."
)


@dataclass
class WriteResult:
    record: Dict[str, Any]
    durable_primary: bool
    note: Optional[str] = None


def resolve_schema(collection: str | CollectionSchema) -> CollectionSchema:
    if isinstance(collection, CollectionSchema):
        return collection
    return get_schema(collection)


class WriteCoordinator:
    """Write each record to the primary store when possible and always to the journal."""

    def __init__(
        self,
        store: SQLiteRecordStore,
        journal: FallbackJournal,
        monitor: ConnectivityMonitor,
    ) -> None:
        self._store = store
        self._journal = journal
        self._monitor = monitor

    def write(self, collection: str | CollectionSchema, payload: Mapping[str, Any]) -> WriteResult:
        """Persist *payload* and report whether the primary store holds it too.

        Raises :class:`~coursedesk.services.records.ValidationError` before any
        storage side effect and
        :class:`~coursedesk.services.journal.JournalWriteError` when the journal
        append fails. Primary failures are logged and reported through
        ``WriteResult.durable_primary``.
        """

        schema = resolve_schema(collection)
        if not schema.journaled:
            raise ValueError(f"Collection '{schema.name}' does not support journaled writes")

        record = schema.build(payload)
        document = record.to_document()
        if self._journal.contains(schema, record.id):
            raise ValidationError(f"Record {record.id} already exists in {schema.name}")

        durable_primary = False
        if self._monitor.is_reachable():
            try:
                self._store.insert(schema, record)
            except PrimaryError as error:
                LOGGER.error(
                    "Primary insert of %s record %s failed: %s",
                    schema.name,
                    record.id,
                    error,
                )
            else:
                durable_primary = True
        else:
            LOGGER.info(
                "Primary store unreachable; %s record %s is journaled only",
                schema.name,
                record.id,
            )

        self._journal.append(schema, document)

        if durable_primary:
            LOGGER.info("Saved %s record %s to primary store and journal", schema.name, record.id)
            return WriteResult(record=document, durable_primary=True)
        return WriteResult(record=document, durable_primary=False, note=JOURNAL_ONLY_NOTE)


__all__ = ["JOURNAL_ONLY_NOTE", "WriteCoordinator", "WriteResult", "resolve_schema"]
