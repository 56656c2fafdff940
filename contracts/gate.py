"""Access gate contracts.

The gate turns a ``GateRequest`` into a ``GateDecision``; the middleware
maps the decision to a response and the audit logger persists it.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from contracts.reputation import ReputationResult


class PathClass(str, Enum):
    EXEMPT = "exempt"      # static assets and probes: no lookup, no audit
    CONSOLE = "console"    # admin list/delete/metrics
    CONTENT = "content"
    OTHER = "other"


class GateVerdict(str, Enum):
    RATE_LIMITED = "rate_limited"
    EXEMPT = "exempt"
    CONSOLE = "console"
    FORBIDDEN = "forbidden"
    LOOKUP_FAILED = "lookup_failed"
    ECHO = "echo"
    PASS = "pass"


# Verdicts that never reach the audit store.
UNAUDITED_VERDICTS = frozenset({GateVerdict.RATE_LIMITED, GateVerdict.EXEMPT})


class GateRequest(BaseModel):
    client_ip: str
    method: str
    path: str
    url: str                       # path + query, verbatim
    credential: str | None = None  # value of the credential header, if sent
    user_agent: str = ""
    origin: str | None = None


class GateDecision(BaseModel):
    verdict: GateVerdict
    path_class: PathClass
    trusted: bool = False
    reputation: ReputationResult | None = None

    @property
    def audited(self) -> bool:
        return self.verdict not in UNAUDITED_VERDICTS
