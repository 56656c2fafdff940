"""Shared contracts — source of truth for all edgegate interfaces."""

from contracts.audit import (
    TABLE_NAME,
    TIMESTAMP_FORMAT,
    UNKNOWN,
    AuditRecord,
    AuditRecordInput,
    AuditStore,
    DeleteOutcome,
    Source,
)
from contracts.errors import (
    AdminDeleteFailed,
    AuditWriteFailed,
    ContentNotFound,
    ContentReadFailed,
    EmptyDeleteRequest,
    GateError,
    RateLimited,
    ReputationLookupFailed,
)
from contracts.gate import GateDecision, GateRequest, GateVerdict, PathClass
from contracts.manifest import AuditConfig, GateConfig, Manifest, RateLimitConfig, ReputationConfig
from contracts.reputation import ReputationClient, ReputationResult, ReputationStatus

__all__ = [
    # audit
    "TABLE_NAME",
    "TIMESTAMP_FORMAT",
    "UNKNOWN",
    "AuditRecord",
    "AuditRecordInput",
    "AuditStore",
    "DeleteOutcome",
    "Source",
    # errors
    "AdminDeleteFailed",
    "AuditWriteFailed",
    "ContentNotFound",
    "ContentReadFailed",
    "EmptyDeleteRequest",
    "GateError",
    "RateLimited",
    "ReputationLookupFailed",
    # gate
    "GateDecision",
    "GateRequest",
    "GateVerdict",
    "PathClass",
    # manifest
    "AuditConfig",
    "GateConfig",
    "Manifest",
    "RateLimitConfig",
    "ReputationConfig",
    # reputation
    "ReputationClient",
    "ReputationResult",
    "ReputationStatus",
]
