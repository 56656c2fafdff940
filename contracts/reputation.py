"""IP reputation contracts.

A lookup either succeeds (possibly with unknown fields) or fails outright;
the two are never conflated.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel

from contracts.audit import UNKNOWN


class ReputationStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"


class ReputationResult(BaseModel):
    status: ReputationStatus
    country: str = UNKNOWN
    region: str = UNKNOWN
    city: str = UNKNOWN
    raw: dict[str, Any] = {}   # provider payload, echoed to untrusted callers
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ReputationStatus.OK

    @classmethod
    def failure(cls, error: str) -> ReputationResult:
        return cls(status=ReputationStatus.FAILED, error=error)


class ReputationClient(ABC):
    """Interface for the single IP geolocation provider."""

    @abstractmethod
    async def lookup(self, client_ip: str) -> ReputationResult:
        """Resolve *client_ip*. Must not raise; failures are returned."""
        ...
