"""Audit store backends.

Both backends are safe to share across the request handlers: a single lock
serialises access to the SQLite connection or the in-memory dict.
"""

from __future__ import annotations

import itertools
import sqlite3
import threading
from pathlib import Path

from contracts.audit import TABLE_NAME, AuditRecord, AuditRecordInput, AuditStore, DeleteOutcome
from contracts.manifest import AuditConfig, StoreBackend

_COLUMNS = ("country", "region", "city", "method", "client_ip", "url", "timestamp", "source", "outcome")

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    country TEXT NOT NULL,
    region TEXT NOT NULL,
    city TEXT NOT NULL,
    method TEXT NOT NULL,
    client_ip TEXT NOT NULL,
    url TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    source TEXT NOT NULL,
    outcome TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_timestamp ON {TABLE_NAME} (timestamp);
"""


class SqliteAuditStore(AuditStore):
    """Audit records in a SQLite ``requests`` table.

    ``AUTOINCREMENT`` guarantees ids are never reused, even after the
    highest row is deleted.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self._path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._lock:
            self._conn.executescript(_SCHEMA)
            self._conn.commit()

    def insert(self, record: AuditRecordInput) -> str:
        values = record.model_dump(mode="json")
        placeholders = ", ".join("?" for _ in _COLUMNS)
        sql = f"INSERT INTO {TABLE_NAME} ({', '.join(_COLUMNS)}) VALUES ({placeholders})"
        with self._lock:
            cursor = self._conn.execute(sql, [values[c] for c in _COLUMNS])
            self._conn.commit()
            return str(cursor.lastrowid)

    def list_ordered(self) -> list[AuditRecord]:
        sql = f"SELECT id, {', '.join(_COLUMNS)} FROM {TABLE_NAME} ORDER BY timestamp DESC, id DESC"
        with self._lock:
            rows = self._conn.execute(sql).fetchall()
        return [AuditRecord(**{**dict(row), "id": str(row["id"])}) for row in rows]

    def delete_by_ids(self, ids: list[str]) -> DeleteOutcome:
        outcome = DeleteOutcome()
        for record_id in ids:
            try:
                rowid = int(record_id)
            except (TypeError, ValueError):
                outcome.failed[record_id] = "malformed id"
                continue
            try:
                with self._lock:
                    cursor = self._conn.execute(f"DELETE FROM {TABLE_NAME} WHERE id = ?", (rowid,))
                    self._conn.commit()
            except sqlite3.Error as exc:
                outcome.failed[record_id] = str(exc)
                continue
            if cursor.rowcount == 0:
                outcome.failed[record_id] = "no such record"
            else:
                outcome.deleted.append(record_id)
        return outcome

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class MemoryAuditStore(AuditStore):
    """Process-local store for tests and throwaway deployments."""

    def __init__(self) -> None:
        self._records: dict[str, AuditRecord] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def insert(self, record: AuditRecordInput) -> str:
        with self._lock:
            record_id = str(next(self._ids))
            self._records[record_id] = AuditRecord(id=record_id, **record.model_dump())
            return record_id

    def list_ordered(self) -> list[AuditRecord]:
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: (r.timestamp, int(r.id)), reverse=True)

    def delete_by_ids(self, ids: list[str]) -> DeleteOutcome:
        outcome = DeleteOutcome()
        with self._lock:
            for record_id in ids:
                if self._records.pop(record_id, None) is None:
                    outcome.failed[record_id] = "no such record"
                else:
                    outcome.deleted.append(record_id)
        return outcome

    def __len__(self) -> int:
        return len(self._records)


def create_store(config: AuditConfig) -> AuditStore:
    if config.backend == StoreBackend.MEMORY:
        return MemoryAuditStore()
    return SqliteAuditStore(config.path)
