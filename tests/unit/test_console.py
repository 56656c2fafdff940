"""Unit tests for the audit console."""

from __future__ import annotations

import pytest

from contracts.audit import AuditRecord, AuditRecordInput, DeleteOutcome
from contracts.errors import AdminDeleteFailed, EmptyDeleteRequest
from contracts.manifest import GateConfig
from gateway.audit.console import AuditConsole
from gateway.audit.store import MemoryAuditStore


def _entry(timestamp: str, url: str = "/api/ipcheck/a.txt") -> AuditRecordInput:
    return AuditRecordInput(method="GET", client_ip="1.2.3.4", url=url, timestamp=timestamp)


class UnorderedStore(MemoryAuditStore):
    """Returns records in insertion order, ignoring timestamps."""

    def list_ordered(self) -> list[AuditRecord]:
        return list(self._records.values())


class FlakyStore(MemoryAuditStore):
    def __init__(self, bad_id: str) -> None:
        super().__init__()
        self.bad_id = bad_id
        self.attempted: list[str] = []

    def delete_by_ids(self, ids: list[str]) -> DeleteOutcome:
        self.attempted.extend(ids)
        outcome = super().delete_by_ids([i for i in ids if i != self.bad_id])
        if self.bad_id in ids:
            outcome.failed[self.bad_id] = "database is locked"
        return outcome


class TestListing:
    def test_sorts_by_parsed_timestamp_regardless_of_store_order(self) -> None:
        store = UnorderedStore()
        store.insert(_entry("2025/01/01 10:00:00", "/b"))
        store.insert(_entry("2025/01/03 08:00:00", "/c"))
        store.insert(_entry("2024/12/31 23:59:59", "/a"))
        console = AuditConsole(store, GateConfig())
        assert [r.url for r in console.list_records()] == ["/c", "/b", "/a"]

    def test_ties_broken_by_id_descending(self) -> None:
        store = UnorderedStore()
        first = store.insert(_entry("2025/01/01 10:00:00"))
        second = store.insert(_entry("2025/01/01 10:00:00"))
        console = AuditConsole(store, GateConfig())
        assert [r.id for r in console.list_records()] == [second, first]

    def test_unparseable_timestamp_sorts_last(self) -> None:
        store = UnorderedStore()
        store.insert(_entry("garbage", "/bad"))
        store.insert(_entry("2025/01/01 10:00:00", "/good"))
        console = AuditConsole(store, GateConfig())
        assert [r.url for r in console.list_records()] == ["/good", "/bad"]


class TestDelete:
    def test_deletes_requested_ids(self) -> None:
        store = MemoryAuditStore()
        ids = [store.insert(_entry("2025/01/01 10:00:00")) for _ in range(3)]
        console = AuditConsole(store, GateConfig())

        outcome = console.delete([ids[0], ids[1]])
        assert outcome.deleted == [ids[0], ids[1]]
        assert [r.id for r in console.list_records()] == [ids[2]]

    def test_accepts_ints_and_duplicates(self) -> None:
        store = MemoryAuditStore()
        record_id = store.insert(_entry("2025/01/01 10:00:00"))
        console = AuditConsole(store, GateConfig())
        outcome = console.delete([int(record_id), record_id])
        assert outcome.deleted == [record_id]

    @pytest.mark.parametrize("ids", [[], [""], ["  "]])
    def test_empty_request_rejected(self, ids: list[str]) -> None:
        console = AuditConsole(MemoryAuditStore(), GateConfig())
        with pytest.raises(EmptyDeleteRequest):
            console.delete(ids)

    def test_partial_failure_attempts_all_and_reports(self) -> None:
        store = FlakyStore(bad_id="2")
        ids = [store.insert(_entry("2025/01/01 10:00:00")) for _ in range(3)]
        console = AuditConsole(store, GateConfig())

        with pytest.raises(AdminDeleteFailed) as excinfo:
            console.delete(ids)

        assert store.attempted == ids
        assert excinfo.value.failed == {"2": "database is locked"}
        assert excinfo.value.status_code == 500
        # no rollback: the others are gone
        assert [r.id for r in console.list_records()] == ["2"]

    def test_repeat_delete_fails_without_corrupting(self) -> None:
        store = MemoryAuditStore()
        a = store.insert(_entry("2025/01/01 10:00:00"))
        b = store.insert(_entry("2025/01/01 11:00:00"))
        console = AuditConsole(store, GateConfig())
        console.delete([a])

        with pytest.raises(AdminDeleteFailed):
            console.delete([a])
        assert [r.id for r in console.list_records()] == [b]
