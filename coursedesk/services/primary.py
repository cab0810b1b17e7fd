"""Primary record store backed by SQLite.

The store is treated as a remote dependency that can disappear at any time.
It never retries on its own; it only reports connection-state transitions to
registered listeners (see :mod:`coursedesk.services.monitor`).
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from .events import emit_db_event
from .records import CollectionSchema, Record


LOGGER = logging.getLogger(__name__)


class PrimaryError(RuntimeError):
    """Base class for primary store failures."""


class PrimaryUnavailableError(PrimaryError):
    """Raised when the primary store cannot be reached."""


class PrimaryWriteRejected(PrimaryError):
    """Raised when the primary store refuses a write (constraint violation)."""


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS course_pdfs (
    id TEXT PRIMARY KEY,
    title TEXT,
    file_name TEXT,
    file_path TEXT,
    original_name TEXT,
    uploaded_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS assignments (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    due_date TEXT NOT NULL,
    file_name TEXT,
    file_path TEXT,
    original_name TEXT,
    uploaded_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS marks (
    id TEXT PRIMARY KEY,
    student_id TEXT,
    marks NUMERIC,
    subject TEXT,
    uploaded_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS assignment_submissions (
    id TEXT PRIMARY KEY,
    assignment_id TEXT NOT NULL,
    student_id TEXT NOT NULL,
    file_name TEXT,
    file_path TEXT,
    original_name TEXT,
    marks NUMERIC DEFAULT NULL,
    feedback TEXT,
    submitted_at TEXT NOT NULL,
    FOREIGN KEY(assignment_id) REFERENCES assignments(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_submissions_assignment
    ON assignment_submissions(assignment_id);
CREATE INDEX IF NOT EXISTS idx_submissions_student
    ON assignment_submissions(student_id);
"""


StateListener = Callable[[bool], None]


class SQLiteRecordStore:
    """Document-style CRUD over one SQLite table per collection."""

    def __init__(self, database_file: Path, *, connect_timeout: float = 5.0) -> None:
        self._database_file = Path(database_file)
        self._connect_timeout = float(connect_timeout)
        self._connected = False
        self._state_lock = threading.Lock()
        self._listeners: List[StateListener] = []

    @property
    def database_file(self) -> Path:
        return self._database_file

    @property
    def connected(self) -> bool:
        return self._connected

    def add_state_listener(self, listener: StateListener) -> None:
        """Register *listener* to be called with the new state on every transition."""

        self._listeners.append(listener)

    def _set_connected(self, connected: bool) -> None:
        with self._state_lock:
            if self._connected == connected:
                return
            self._connected = connected
        for listener in list(self._listeners):
            try:
                listener(connected)
            except Exception:  # noqa: BLE001 - a listener must not break the store
                LOGGER.exception("Primary state listener %r failed", listener)

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------
    def _open(self, *, create: bool) -> sqlite3.Connection:
        mode = "rwc" if create else "rw"
        uri = f"{self._database_file.resolve().as_uri()}?mode={mode}"
        connection = sqlite3.connect(
            uri,
            uri=True,
            timeout=self._connect_timeout,
            check_same_thread=False,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def connect(self) -> None:
        """Open the database, ensure the schema exists and mark the store reachable."""

        start = time.perf_counter()
        try:
            connection = self._open(create=True)
            try:
                connection.executescript(SCHEMA_SQL)
                connection.commit()
            finally:
                connection.close()
        except sqlite3.Error as error:
            emit_db_event(
                "connect",
                payload={"database": self._database_file, "status": "error", "error": error},
                duration_ms=(time.perf_counter() - start) * 1000.0,
                level=logging.WARNING,
            )
            self._set_connected(False)
            raise PrimaryUnavailableError(
                f"Primary store at '{self._database_file}' is unavailable: {error}"
            ) from error
        emit_db_event(
            "connect",
            payload={"database": self._database_file, "status": "ok"},
            duration_ms=(time.perf_counter() - start) * 1000.0,
        )
        self._set_connected(True)

    @contextlib.contextmanager
    def _session(self, action: str, schema: CollectionSchema) -> Iterator[sqlite3.Connection]:
        start = time.perf_counter()
        status = "ok"
        try:
            try:
                connection = self._open(create=False)
            except sqlite3.Error as error:
                status = "unavailable"
                self._set_connected(False)
                raise PrimaryUnavailableError(
                    f"Primary store at '{self._database_file}' is unavailable: {error}"
                ) from error
            try:
                yield connection
                connection.commit()
            except sqlite3.IntegrityError as error:
                status = "rejected"
                connection.rollback()
                raise PrimaryWriteRejected(f"{schema.name}: {error}") from error
            except sqlite3.Error as error:
                status = "unavailable"
                self._set_connected(False)
                raise PrimaryUnavailableError(
                    f"Primary store failed during {action} on {schema.name}: {error}"
                ) from error
            finally:
                connection.close()
        finally:
            emit_db_event(
                f"{schema.table}.{action}",
                payload={"status": status},
                duration_ms=(time.perf_counter() - start) * 1000.0,
            )

    # ------------------------------------------------------------------
    # Row translation
    # ------------------------------------------------------------------
    @staticmethod
    def _row_to_document(schema: CollectionSchema, row: sqlite3.Row) -> Dict[str, Any]:
        return {key: row[column] for key, column in schema.column_map().items()}

    @staticmethod
    def _column_for(schema: CollectionSchema, key: str) -> str:
        try:
            return schema.column_map()[key]
        except KeyError:
            raise ValueError(f"Unknown field '{key}' for {schema.name}") from None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def insert(self, schema: CollectionSchema, record: Record) -> None:
        document = record.to_document()
        columns = schema.column_map()
        names = ", ".join(columns.values())
        placeholders = ", ".join("?" for _ in columns)
        values = [document.get(key) for key in columns]
        with self._session("insert", schema) as connection:
            connection.execute(
                f"INSERT INTO {schema.table} ({names}) VALUES ({placeholders})",
                values,
            )
        LOGGER.debug("Inserted %s record %s into primary store", schema.name, record.id)

    def find_sorted(
        self,
        schema: CollectionSchema,
        by_field: str,
        *,
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        order_column = self._column_for(schema, by_field)
        direction = "DESC" if descending else "ASC"
        with self._session("find_sorted", schema) as connection:
            rows = connection.execute(
                f"SELECT * FROM {schema.table} ORDER BY {order_column} {direction}, rowid {direction}"
            ).fetchall()
        return [self._row_to_document(schema, row) for row in rows]

    def find_where(
        self,
        schema: CollectionSchema,
        field_name: str,
        value: Any,
        *,
        by_field: str,
        descending: bool = True,
    ) -> List[Dict[str, Any]]:
        filter_column = self._column_for(schema, field_name)
        order_column = self._column_for(schema, by_field)
        direction = "DESC" if descending else "ASC"
        with self._session("find_where", schema) as connection:
            rows = connection.execute(
                f"SELECT * FROM {schema.table} WHERE {filter_column} = ? "
                f"ORDER BY {order_column} {direction}, rowid {direction}",
                (value,),
            ).fetchall()
        return [self._row_to_document(schema, row) for row in rows]

    def find_one(self, schema: CollectionSchema, record_id: str) -> Optional[Dict[str, Any]]:
        with self._session("find_one", schema) as connection:
            row = connection.execute(
                f"SELECT * FROM {schema.table} WHERE id = ?",
                (record_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_document(schema, row)

    def update(
        self,
        schema: CollectionSchema,
        record_id: str,
        changes: Mapping[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """Apply *changes* to a record and return the updated document."""

        if not changes:
            return self.find_one(schema, record_id)
        assignments = ", ".join(f"{self._column_for(schema, key)} = ?" for key in changes)
        with self._session("update", schema) as connection:
            cursor = connection.execute(
                f"UPDATE {schema.table} SET {assignments} WHERE id = ?",
                (*changes.values(), record_id),
            )
            if cursor.rowcount == 0:
                return None
            row = connection.execute(
                f"SELECT * FROM {schema.table} WHERE id = ?",
                (record_id,),
            ).fetchone()
        return self._row_to_document(schema, row)

    def delete(self, schema: CollectionSchema, record_id: str) -> bool:
        with self._session("delete", schema) as connection:
            cursor = connection.execute(
                f"DELETE FROM {schema.table} WHERE id = ?",
                (record_id,),
            )
        return cursor.rowcount > 0

    def count(self, schema: CollectionSchema) -> int:
        with self._session("count", schema) as connection:
            row = connection.execute(f"SELECT COUNT(*) FROM {schema.table}").fetchone()
        return int(row[0]) if row is not None else 0


__all__ = [
    "PrimaryError",
    "PrimaryUnavailableError",
    "PrimaryWriteRejected",
    "SCHEMA_SQL",
    "SQLiteRecordStore",
]
