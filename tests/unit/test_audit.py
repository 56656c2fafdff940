"""Unit tests for the audit stores and the audit logger."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from pathlib import Path

import pytest

from contracts.audit import UNKNOWN, AuditRecordInput, AuditStore, Source
from contracts.gate import GateDecision, GateRequest, GateVerdict, PathClass
from contracts.manifest import AuditConfig, GateConfig, StoreBackend
from contracts.reputation import ReputationResult, ReputationStatus
from gateway.audit.logger import GateAuditLogger
from gateway.audit.store import MemoryAuditStore, SqliteAuditStore, create_store
from gateway.metrics import GateCounters


# ── helpers ─────────────────────────────────────────────────────────


def _entry(url: str = "/api/ipcheck/logo.svg", timestamp: str = "2025/01/01 12:00:00") -> AuditRecordInput:
    return AuditRecordInput(
        country="Japan",
        region="Tokyo",
        city="Chiyoda",
        method="GET",
        client_ip="1.2.3.4",
        url=url,
        timestamp=timestamp,
        source=Source.TOOL,
        outcome="echo",
    )


@pytest.fixture(params=["sqlite", "memory"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> AuditStore:
    if request.param == "sqlite":
        s = SqliteAuditStore(tmp_path / "audit.db")
    else:
        s = MemoryAuditStore()
    yield s
    s.close()


# ── store tests (both backends) ─────────────────────────────────────


class TestAuditStore:
    def test_insert_assigns_distinct_ids(self, store: AuditStore) -> None:
        a = store.insert(_entry())
        b = store.insert(_entry())
        assert a != b

    def test_list_returns_all_fields(self, store: AuditStore) -> None:
        record_id = store.insert(_entry())
        [record] = store.list_ordered()
        assert record.id == record_id
        assert record.country == "Japan"
        assert record.source == Source.TOOL
        assert record.outcome == "echo"

    def test_list_is_newest_first(self, store: AuditStore) -> None:
        store.insert(_entry(url="/old", timestamp="2025/01/01 09:00:00"))
        store.insert(_entry(url="/new", timestamp="2025/01/02 09:00:00"))
        store.insert(_entry(url="/mid", timestamp="2025/01/01 18:00:00"))
        assert [r.url for r in store.list_ordered()] == ["/new", "/mid", "/old"]

    def test_delete_removes_exactly_those_ids(self, store: AuditStore) -> None:
        ids = [store.insert(_entry(url=f"/{i}")) for i in range(4)]
        outcome = store.delete_by_ids([ids[0], ids[2]])
        assert outcome.ok
        assert outcome.deleted == [ids[0], ids[2]]
        assert sorted(r.id for r in store.list_ordered()) == sorted([ids[1], ids[3]])

    def test_missing_id_fails_without_touching_others(self, store: AuditStore) -> None:
        kept = store.insert(_entry())
        gone = store.insert(_entry())
        outcome = store.delete_by_ids([gone, "99999", kept])
        assert outcome.deleted == [gone, kept]
        assert list(outcome.failed) == ["99999"]

    def test_second_delete_of_same_id_fails(self, store: AuditStore) -> None:
        record_id = store.insert(_entry())
        other = store.insert(_entry())
        assert store.delete_by_ids([record_id]).ok
        outcome = store.delete_by_ids([record_id])
        assert not outcome.ok
        assert [r.id for r in store.list_ordered()] == [other]

    def test_ids_are_not_reused_after_delete(self, store: AuditStore) -> None:
        first = store.insert(_entry())
        store.delete_by_ids([first])
        second = store.insert(_entry())
        assert second != first


class TestSqliteAuditStore:
    def test_creates_requests_table(self, tmp_path: Path) -> None:
        import sqlite3

        db = tmp_path / "nested" / "audit.db"
        SqliteAuditStore(db).close()
        conn = sqlite3.connect(str(db))
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        conn.close()
        assert "requests" in tables

    def test_records_survive_reopen(self, tmp_path: Path) -> None:
        db = tmp_path / "audit.db"
        s = SqliteAuditStore(db)
        s.insert(_entry())
        s.close()

        reopened = SqliteAuditStore(db)
        assert len(reopened.list_ordered()) == 1
        reopened.close()

    def test_malformed_id_is_a_failure(self, tmp_path: Path) -> None:
        s = SqliteAuditStore(tmp_path / "audit.db")
        outcome = s.delete_by_ids(["abc"])
        assert outcome.failed == {"abc": "malformed id"}
        s.close()

    def test_create_store_picks_backend(self, tmp_path: Path) -> None:
        assert isinstance(create_store(AuditConfig(backend=StoreBackend.MEMORY)), MemoryAuditStore)
        s = create_store(AuditConfig(backend=StoreBackend.SQLITE, path=str(tmp_path / "a.db")))
        assert isinstance(s, SqliteAuditStore)
        s.close()


# ── logger tests ────────────────────────────────────────────────────


class BrokenStore(MemoryAuditStore):
    def insert(self, record: AuditRecordInput) -> str:
        raise RuntimeError("disk full")


class SlowStore(MemoryAuditStore):
    def insert(self, record: AuditRecordInput) -> str:
        time.sleep(0.5)
        return super().insert(record)


def _fixed_clock(tz):
    return datetime(2025, 3, 1, 3, 4, 5, tzinfo=timezone.utc).astimezone(tz)


def _logger(store: AuditStore, counters: GateCounters | None = None, **kwargs) -> GateAuditLogger:
    return GateAuditLogger(
        store,
        GateConfig(credential_value="letmein"),
        counters=counters,
        clock=_fixed_clock,
        **kwargs,
    )


def _request(credential: str | None = None, user_agent: str = "curl/8.5.0") -> GateRequest:
    return GateRequest(
        client_ip="1.2.3.4",
        method="get",
        path="/api/ipcheck/logo.svg",
        url="/api/ipcheck/logo.svg?v=2",
        credential=credential,
        user_agent=user_agent,
    )


def _decision(verdict: GateVerdict = GateVerdict.ECHO, trusted: bool = False, ok: bool = True) -> GateDecision:
    if ok:
        reputation = ReputationResult(status=ReputationStatus.OK, country="Japan", region="Tokyo", city="Chiyoda")
    else:
        reputation = ReputationResult.failure("down")
    return GateDecision(verdict=verdict, path_class=PathClass.CONTENT, trusted=trusted, reputation=reputation)


class TestGateAuditLogger:
    @pytest.mark.asyncio
    async def test_records_reputation_and_request(self) -> None:
        store = MemoryAuditStore()
        record_id = await _logger(store).record(_request(), _decision())
        [record] = store.list_ordered()
        assert record.id == record_id
        assert (record.country, record.region, record.city) == ("Japan", "Tokyo", "Chiyoda")
        assert record.method == "GET"
        assert record.url == "/api/ipcheck/logo.svg?v=2"
        assert record.outcome == "echo"

    @pytest.mark.asyncio
    async def test_timestamp_in_configured_zone(self) -> None:
        store = MemoryAuditStore()
        await _logger(store, timezone="Asia/Tokyo").record(_request(), _decision())
        assert store.list_ordered()[0].timestamp == "2025/03/01 12:04:05"

    @pytest.mark.asyncio
    async def test_credential_annotates_method(self) -> None:
        store = MemoryAuditStore()
        await _logger(store).record(_request(credential="letmein"), _decision(GateVerdict.PASS, trusted=True))
        record = store.list_ordered()[0]
        assert record.method == "GET letmein"
        assert record.source == Source.TOOL

    @pytest.mark.asyncio
    async def test_browser_source(self) -> None:
        store = MemoryAuditStore()
        await _logger(store).record(_request(user_agent="Mozilla/5.0"), _decision())
        assert store.list_ordered()[0].source == Source.BROWSER

    @pytest.mark.asyncio
    async def test_failed_lookup_writes_unknown_location(self) -> None:
        store = MemoryAuditStore()
        await _logger(store).record(_request(), _decision(GateVerdict.LOOKUP_FAILED, ok=False))
        record = store.list_ordered()[0]
        assert (record.country, record.region, record.city) == (UNKNOWN, UNKNOWN, UNKNOWN)
        assert record.outcome == "lookup_failed"

    @pytest.mark.asyncio
    async def test_unaudited_verdicts_are_skipped(self) -> None:
        store = MemoryAuditStore()
        logger = _logger(store)
        assert await logger.record(_request(), _decision(GateVerdict.RATE_LIMITED)) is None
        assert await logger.record(_request(), _decision(GateVerdict.EXEMPT)) is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_store_failure_is_counted_not_raised(self) -> None:
        counters = GateCounters()
        result = await _logger(BrokenStore(), counters).record(_request(), _decision())
        assert result is None
        assert counters.get("audit_write_failures") == 1
        assert counters.get("audit_writes") == 0

    @pytest.mark.asyncio
    async def test_slow_store_times_out(self) -> None:
        counters = GateCounters()
        result = await _logger(SlowStore(), counters, write_timeout=0.05).record(_request(), _decision())
        assert result is None
        assert counters.get("audit_write_failures") == 1
