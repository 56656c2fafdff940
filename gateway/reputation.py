"""ip-api style reputation client.

Resolves a client IP via ``GET {base_url}/json/{ip}`` using httpx. Every
failure mode is folded into a ``ReputationResult`` so the gate never has to
catch transport exceptions.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from loguru import logger

from contracts.audit import UNKNOWN
from contracts.manifest import ReputationConfig
from contracts.reputation import ReputationClient, ReputationResult, ReputationStatus

# provider field -> ReputationResult field
_FIELDS = {"country": "country", "regionName": "region", "city": "city"}


class IpApiReputationClient(ReputationClient):
    """Async client for a single ip-api compatible lookup host."""

    def __init__(
        self,
        base_url: str = "http://ip-api.com",
        timeout: float = 3.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: ReputationConfig) -> IpApiReputationClient:
        return cls(base_url=config.base_url, timeout=config.timeout_seconds)

    async def lookup(self, client_ip: str) -> ReputationResult:
        url = f"{self._base_url}/json/{client_ip}"
        try:
            resp = await asyncio.wait_for(self._fetch(url), timeout=self._timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return self._failed(client_ip, f"timed out after {self._timeout}s")
        except httpx.HTTPError as exc:
            return self._failed(client_ip, f"{type(exc).__name__}: {exc}")

        if not 200 <= resp.status_code < 300:
            return self._failed(client_ip, f"lookup returned HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError:
            return self._failed(client_ip, "lookup returned a non-JSON body")
        if not isinstance(data, dict):
            return self._failed(client_ip, f"lookup returned {type(data).__name__}, expected object")

        return parse_payload(data)

    async def _fetch(self, url: str) -> httpx.Response:
        # httpx bounds each phase; wait_for above bounds the whole exchange
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(url)

    @staticmethod
    def _failed(client_ip: str, error: str) -> ReputationResult:
        logger.warning("Reputation lookup failed for {}: {}", client_ip, error)
        return ReputationResult.failure(error)


def parse_payload(data: dict[str, Any]) -> ReputationResult:
    """Build a successful result, filling absent or blank fields with UNKNOWN."""
    fields: dict[str, str] = {}
    for provider_key, field in _FIELDS.items():
        value = data.get(provider_key)
        fields[field] = str(value) if value not in (None, "") else UNKNOWN
    return ReputationResult(status=ReputationStatus.OK, raw=data, **fields)
