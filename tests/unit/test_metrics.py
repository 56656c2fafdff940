"""Unit tests for gateway/metrics.py."""

from __future__ import annotations

import threading

from contracts.audit import AuditRecord, Source
from gateway.metrics import GateCounters, compute_metrics, parse_timestamp


def _record(i: int, country: str = "Japan", source: Source = Source.TOOL, **kwargs) -> AuditRecord:
    data = {
        "id": str(i),
        "country": country,
        "method": "GET",
        "client_ip": f"10.0.0.{i}",
        "url": "/api/ipcheck/logo.svg",
        "timestamp": f"2025/01/0{i} 10:00:00",
        "source": source,
        "outcome": "echo",
    }
    data.update(kwargs)
    return AuditRecord(**data)


class TestGateCounters:
    def test_incr_and_snapshot(self) -> None:
        counters = GateCounters()
        counters.incr("audit_writes")
        counters.incr("audit_writes", 2)
        counters.incr("lookup_failures")
        assert counters.get("audit_writes") == 3
        assert counters.snapshot() == {"audit_writes": 3, "lookup_failures": 1}

    def test_unknown_counter_is_zero(self) -> None:
        assert GateCounters().get("nothing") == 0

    def test_thread_safe(self) -> None:
        counters = GateCounters()
        threads = [threading.Thread(target=lambda: [counters.incr("n") for _ in range(1000)]) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert counters.get("n") == 4000


class TestComputeMetrics:
    def test_tallies(self) -> None:
        records = [
            _record(1),
            _record(2, country="France", source=Source.BROWSER),
            _record(3, method="GET letmein", outcome="pass"),
        ]
        m = compute_metrics(records)
        assert m["by_country"][0] == {"value": "Japan", "count": 2}
        assert {"value": "browser", "count": 1} in m["by_source"]
        assert m["by_method"] == [{"value": "GET", "count": 3}]
        assert {"value": "pass", "count": 1} in m["by_outcome"]

    def test_summary(self) -> None:
        m = compute_metrics([_record(3), _record(1), _record(2)])
        assert m["summary"]["total_records"] == 3
        assert m["summary"]["first_record"] == "2025/01/01 10:00:00"
        assert m["summary"]["last_record"] == "2025/01/03 10:00:00"
        assert m["summary"]["distinct_ips"] == 3

    def test_empty(self) -> None:
        m = compute_metrics([])
        assert m["summary"] == {"total_records": 0, "first_record": None, "last_record": None}
        assert m["by_country"] == []


def test_parse_timestamp_rejects_other_formats() -> None:
    assert parse_timestamp("2025-01-01T10:00:00") is None
    assert parse_timestamp("2025/01/01 10:00:00").hour == 10
