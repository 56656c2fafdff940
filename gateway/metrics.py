"""Operational counters and audit aggregates.

``GateCounters`` tracks in-process events that never reach the audit store
(rate-limit refusals, audit write failures). ``compute_metrics`` summarises
the persisted records themselves.
"""

from __future__ import annotations

import threading
from collections import Counter
from datetime import datetime
from typing import Any

from contracts.audit import TIMESTAMP_FORMAT, AuditRecord


class GateCounters:
    """Thread-safe named counters."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()
        self._lock = threading.Lock()

    def incr(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counts[name] += amount

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(sorted(self._counts.items()))


def parse_timestamp(value: str) -> datetime | None:
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT)
    except (TypeError, ValueError):
        return None


def compute_metrics(records: list[AuditRecord]) -> dict[str, Any]:
    """Aggregate audit records by country, source, outcome and method."""
    return {
        "by_country": _tally(r.country for r in records),
        "by_source": _tally(r.source.value for r in records),
        "by_outcome": _tally(r.outcome or "unknown" for r in records),
        "by_method": _tally(r.method.split(" ", 1)[0] for r in records),
        "summary": _summary(records),
    }


def _tally(values) -> list[dict[str, Any]]:
    counts = Counter(values)
    return [{"value": v, "count": c} for v, c in sorted(counts.items(), key=lambda x: (-x[1], x[0]))]


def _summary(records: list[AuditRecord]) -> dict[str, Any]:
    """High-level summary stats."""
    stamps = sorted(ts for ts in (parse_timestamp(r.timestamp) for r in records) if ts)
    if not stamps:
        return {"total_records": len(records), "first_record": None, "last_record": None}

    return {
        "total_records": len(records),
        "first_record": stamps[0].strftime(TIMESTAMP_FORMAT),
        "last_record": stamps[-1].strftime(TIMESTAMP_FORMAT),
        "distinct_ips": len({r.client_ip for r in records}),
    }
