"""Audit record contracts.

One record per gated request, persisted in the ``requests`` table.
Records are immutable once inserted; the only mutation is bulk delete.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel

UNKNOWN = "unknown"
TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"
TABLE_NAME = "requests"


class Source(str, Enum):
    TOOL = "tool"
    BROWSER = "browser"


class AuditRecordInput(BaseModel):
    """Everything the logger knows about a request before the store assigns an id."""

    country: str = UNKNOWN
    region: str = UNKNOWN
    city: str = UNKNOWN
    method: str
    client_ip: str
    url: str
    timestamp: str       # TIMESTAMP_FORMAT, in the configured zone
    source: Source = Source.TOOL
    outcome: str = ""    # gate verdict that produced the record


class AuditRecord(AuditRecordInput):
    """A persisted audit record."""

    id: str


class DeleteOutcome(BaseModel):
    deleted: list[str] = []
    failed: dict[str, str] = {}   # id -> reason, in attempt order

    @property
    def ok(self) -> bool:
        return not self.failed


class AuditStore(ABC):
    """Minimal interface the gateway needs from the backing store."""

    @abstractmethod
    def insert(self, record: AuditRecordInput) -> str:
        """Persist a record and return its newly assigned id."""
        ...

    @abstractmethod
    def list_ordered(self) -> list[AuditRecord]:
        """Return all records, most recent first."""
        ...

    @abstractmethod
    def delete_by_ids(self, ids: list[str]) -> DeleteOutcome:
        """Delete each id independently; failures do not roll back earlier deletes."""
        ...

    def close(self) -> None:
        """Release any held resources."""
