"""Audit logger — one record per gated request.

Store writes run in a worker thread bounded by a timeout. A failed or
slow write is logged and counted but never fails the caller's response.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, tzinfo
from typing import Callable
from zoneinfo import ZoneInfo

from loguru import logger

from contracts.audit import TIMESTAMP_FORMAT, UNKNOWN, AuditRecordInput, AuditStore, Source
from contracts.errors import AuditWriteFailed
from contracts.gate import GateDecision, GateRequest
from contracts.manifest import GateConfig

from gateway.metrics import GateCounters


class GateAuditLogger:
    """Turn gate decisions into audit records and persist them."""

    def __init__(
        self,
        store: AuditStore,
        gate_config: GateConfig,
        *,
        timezone: str | tzinfo = "Asia/Tokyo",
        write_timeout: float = 5.0,
        counters: GateCounters | None = None,
        clock: Callable[[tzinfo], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._gate_config = gate_config
        self._tz = ZoneInfo(timezone) if isinstance(timezone, str) else timezone
        self._write_timeout = write_timeout
        self._counters = counters or GateCounters()
        self._clock = clock

    def build_record(self, request: GateRequest, decision: GateDecision) -> AuditRecordInput:
        reputation = decision.reputation
        country = region = city = UNKNOWN
        if reputation is not None and reputation.ok:
            country, region, city = reputation.country, reputation.region, reputation.city

        return AuditRecordInput(
            country=country,
            region=region,
            city=city,
            method=self.annotate_method(request),
            client_ip=request.client_ip,
            url=request.url,
            timestamp=self._clock(self._tz).strftime(TIMESTAMP_FORMAT),
            source=self.classify_source(request, decision.trusted),
            outcome=decision.verdict.value,
        )

    def annotate_method(self, request: GateRequest) -> str:
        method = request.method.upper()
        if self._gate_config.annotate_credential and request.credential:
            return f"{method} {request.credential}"
        return method

    def classify_source(self, request: GateRequest, trusted: bool) -> Source:
        if trusted:
            return Source.TOOL
        if any(marker in request.user_agent for marker in self._gate_config.browser_markers):
            return Source.BROWSER
        return Source.TOOL

    async def record(self, request: GateRequest, decision: GateDecision) -> str | None:
        """Persist the decision. Returns the new id, or None if the write failed."""
        if not decision.audited:
            return None

        entry = self.build_record(request, decision)
        try:
            record_id = await self._insert(entry)
        except AuditWriteFailed as exc:
            self._counters.incr("audit_write_failures")
            logger.warning("Audit write failed for {} {}: {}", entry.method, entry.url, exc)
            return None

        self._counters.incr("audit_writes")
        return record_id

    async def _insert(self, entry: AuditRecordInput) -> str:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._store.insert, entry),
                timeout=self._write_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise AuditWriteFailed(f"store write exceeded {self._write_timeout}s") from exc
        except Exception as exc:
            raise AuditWriteFailed(f"{type(exc).__name__}: {exc}") from exc
