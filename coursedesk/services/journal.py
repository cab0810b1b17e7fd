"""File-resident fallback journal: one JSON array per collection."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping

from .events import emit_file_event
from .records import CollectionSchema, ValidationError


LOGGER = logging.getLogger(__name__)


class JournalWriteError(OSError):
    """Raised when a journal file cannot be persisted."""


class FallbackJournal:
    """Append-only record log kept next to the primary store.

    Each collection is persisted as a pretty-printed JSON array that is
    rewritten in full on every append. A per-collection lock serialises the
    read-modify-write cycle so concurrent writers never drop each other's
    records.
    """

    def __init__(self, journal_root: Path) -> None:
        self._root = Path(journal_root)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, schema: CollectionSchema) -> Path:
        if schema.journal_file is None:
            raise ValueError(f"Collection '{schema.name}' is not journaled")
        return self._root / schema.journal_file

    def _lock_for(self, schema: CollectionSchema) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(schema.name)
            if lock is None:
                lock = threading.Lock()
                self._locks[schema.name] = lock
            return lock

    def _load(self, schema: CollectionSchema, *, for_write: bool = False) -> List[Dict[str, Any]]:
        path = self.path_for(schema)
        start = time.perf_counter()
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except UnicodeDecodeError as error:
            LOGGER.warning(
                "Journal %s is not valid UTF-8 (%s); treating it as empty. "
                "Its previous contents will be lost on the next write.",
                path,
                error,
            )
            return []
        except OSError as error:
            # An unreadable file must not be replaced by a rewrite.
            if for_write:
                raise JournalWriteError(f"Could not read journal '{path}': {error}") from error
            LOGGER.error("Could not read journal %s: %s", path, error)
            return []

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as error:
            LOGGER.warning(
                "Journal %s is not valid JSON (%s); treating it as empty. "
                "Its previous contents will be lost on the next write.",
                path,
                error,
            )
            return []
        if not isinstance(payload, list):
            LOGGER.warning(
                "Journal %s does not hold a JSON array; treating it as empty.", path
            )
            return []

        records = [entry for entry in payload if isinstance(entry, dict)]
        if len(records) != len(payload):
            LOGGER.warning(
                "Journal %s contained %s non-object entries; they were skipped.",
                path,
                len(payload) - len(records),
            )
        emit_file_event(
            "journal.read",
            payload={"path": path, "count": len(records)},
            duration_ms=(time.perf_counter() - start) * 1000.0,
        )
        return records

    def _persist(self, schema: CollectionSchema, records: List[Dict[str, Any]]) -> None:
        path = self.path_for(schema)
        start = time.perf_counter()
        temp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                temp_name = handle.name
                json.dump(records, handle, indent=2)
                handle.write("\n")
            os.replace(temp_name, path)
        except OSError as error:
            if temp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(temp_name)
            raise JournalWriteError(f"Could not write journal '{path}': {error}") from error
        emit_file_event(
            "journal.write",
            payload={"path": path, "count": len(records)},
            duration_ms=(time.perf_counter() - start) * 1000.0,
        )

    def read_all(self, schema: CollectionSchema) -> List[Dict[str, Any]]:
        """Return the journal contents in insertion order."""

        with self._lock_for(schema):
            return self._load(schema)

    def contains(self, schema: CollectionSchema, record_id: Any) -> bool:
        with self._lock_for(schema):
            return _has_id(self._load(schema), record_id)

    def append(self, schema: CollectionSchema, document: Mapping[str, Any]) -> None:
        """Append *document* to the collection's journal.

        Raises :class:`ValidationError` when a record with the same id is
        already journaled and :class:`JournalWriteError` when the existing
        file cannot be read or the new one cannot be written.
        """

        with self._lock_for(schema):
            records = self._load(schema, for_write=True)
            record_id = document.get("id")
            if record_id is not None and _has_id(records, record_id):
                raise ValidationError(f"Record {record_id} already exists in {schema.name}")
            records.append(dict(document))
            self._persist(schema, records)
        LOGGER.debug(
            "Journaled %s record %s (%s entries)",
            schema.name,
            document.get("id"),
            len(records),
        )


def _has_id(records: List[Dict[str, Any]], record_id: Any) -> bool:
    wanted = str(record_id)
    for entry in records:
        existing = entry.get("id", entry.get("_id"))
        if existing is not None and str(existing) == wanted:
            return True
    return False


__all__ = ["FallbackJournal", "JournalWriteError"]
