"""Manifest (edgegate.yaml) schema — Pydantic models.

One section per gateway component; every field has a working default so a
manifest only needs to name what it overrides.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


# ── Top-level sections ──────────────────────────────────────────────


class AppInfo(BaseModel):
    name: str = "edgegate"
    version: str = "0.1.0"


class RuntimeConfig(BaseModel):
    debug: bool = False          # include diagnostics in dependency errors
    timezone: str = "Asia/Tokyo"  # audit timestamps are rendered in this zone


# ── Gate ─────────────────────────────────────────────────────────────


class GateConfig(BaseModel):
    credential_header: str = "x-edgegate-key"
    credential_value: str = ""
    annotate_credential: bool = True   # append the supplied value to the audit method
    content_prefix: str = "/api/ipcheck"
    list_path: str = "/mine/list"
    delete_path: str = "/mine/delete"
    metrics_path: str = "/mine/metrics"
    exempt_paths: list[str] = ["/favicon.ico", "/favicon.png", "/health"]
    block_browsers: bool = True
    browser_markers: list[str] = ["Mozilla"]
    # X-Forwarded-For is honoured only when the socket peer is one of these
    trusted_proxies: list[str] = ["127.0.0.1", "::1"]

    @property
    def console_paths(self) -> set[str]:
        return {self.list_path, self.delete_path, self.metrics_path}


class RateLimitConfig(BaseModel):
    window_seconds: int = Field(default=15 * 60, gt=0)
    max_requests: int = Field(default=5000, gt=0)
    sweep_threshold: int = Field(default=10_000, gt=0)  # tracked IPs before elapsed windows are swept


class ReputationConfig(BaseModel):
    base_url: str = "http://ip-api.com"
    timeout_seconds: float = Field(default=3.0, gt=0)


# ── Audit ────────────────────────────────────────────────────────────


class StoreBackend(str, Enum):
    SQLITE = "sqlite"
    MEMORY = "memory"


class AuditConfig(BaseModel):
    backend: StoreBackend = StoreBackend.SQLITE
    path: str = "edgegate.db"
    write_timeout_seconds: float = Field(default=5.0, gt=0)


# ── Content + logging ────────────────────────────────────────────────


class ContentConfig(BaseModel):
    directory: str = "content"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str | None = None   # rotating files are written only when set


# ── Root manifest ────────────────────────────────────────────────────


class Manifest(BaseModel):
    app: AppInfo = AppInfo()
    runtime: RuntimeConfig = RuntimeConfig()
    gate: GateConfig = GateConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()
    reputation: ReputationConfig = ReputationConfig()
    audit: AuditConfig = AuditConfig()
    content: ContentConfig = ContentConfig()
    logging: LoggingConfig = LoggingConfig()
