"""Access gate — the per-request decision engine.

Evaluation order: rate limit, path classification, reputation lookup,
browser block, lookup failure, trust, echo. The gate never persists
anything; the middleware hands its decision to the audit logger.
"""

from __future__ import annotations

import hmac

from contracts.gate import GateDecision, GateRequest, GateVerdict, PathClass
from contracts.manifest import GateConfig
from contracts.reputation import ReputationClient

from gateway.metrics import GateCounters
from gateway.rate_limiter import RateLimiter


class AccessGate:
    """Classify and route a request using the gate section of the manifest."""

    def __init__(
        self,
        config: GateConfig,
        rate_limiter: RateLimiter,
        reputation: ReputationClient,
        counters: GateCounters | None = None,
    ) -> None:
        self._config = config
        self._rate_limiter = rate_limiter
        self._reputation = reputation
        self._counters = counters or GateCounters()

    # ── classification helpers ──────────────────────────────────────

    def classify_path(self, path: str) -> PathClass:
        cfg = self._config
        if path in cfg.exempt_paths:
            return PathClass.EXEMPT
        if path in cfg.console_paths:
            return PathClass.CONSOLE
        prefix = cfg.content_prefix.rstrip("/")
        if path == prefix or path.startswith(prefix + "/"):
            return PathClass.CONTENT
        return PathClass.OTHER

    def is_trusted(self, credential: str | None) -> bool:
        expected = self._config.credential_value
        if not expected or credential is None:
            return False
        return hmac.compare_digest(credential.encode(), expected.encode())

    def looks_like_browser(self, user_agent: str) -> bool:
        return any(marker in user_agent for marker in self._config.browser_markers)

    # ── decision ────────────────────────────────────────────────────

    async def evaluate(self, request: GateRequest) -> GateDecision:
        trusted = self.is_trusted(request.credential)

        if not self._rate_limiter.allow(request.client_ip, trusted):
            return self._decide(GateVerdict.RATE_LIMITED, PathClass.OTHER, trusted)

        path_class = self.classify_path(request.path)
        if path_class == PathClass.EXEMPT:
            return self._decide(GateVerdict.EXEMPT, path_class, trusted)

        reputation = await self._reputation.lookup(request.client_ip)
        if not reputation.ok:
            self._counters.incr("lookup_failures")

        # console requests return early: no browser block, no echo, and a
        # failed lookup only degrades the audit record
        if path_class == PathClass.CONSOLE:
            return self._decide(GateVerdict.CONSOLE, path_class, trusted, reputation)

        if (
            self._config.block_browsers
            and request.origin
            and self.looks_like_browser(request.user_agent)
        ):
            return self._decide(GateVerdict.FORBIDDEN, path_class, trusted, reputation)

        if not reputation.ok:
            return self._decide(GateVerdict.LOOKUP_FAILED, path_class, trusted, reputation)

        if trusted:
            return self._decide(GateVerdict.PASS, path_class, trusted, reputation)

        if request.method.upper() == "GET":
            return self._decide(GateVerdict.ECHO, path_class, trusted, reputation)

        return self._decide(GateVerdict.PASS, path_class, trusted, reputation)

    def _decide(self, verdict, path_class, trusted, reputation=None) -> GateDecision:
        self._counters.incr(f"verdict.{verdict.value}")
        return GateDecision(
            verdict=verdict,
            path_class=path_class,
            trusted=trusted,
            reputation=reputation,
        )
