"""edgegate FastAPI application factory.

Every component is built once in ``create_app`` and shared through
``app.state.services``; the gate middleware and the routes read from there.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger

from contracts.audit import AuditStore
from contracts.errors import EmptyDeleteRequest, GateError
from contracts.manifest import Manifest
from contracts.reputation import ReputationClient

from gateway.audit.console import AuditConsole
from gateway.audit.logger import GateAuditLogger
from gateway.audit.store import create_store
from gateway.content import FileContentStore
from gateway.gate import AccessGate
from gateway.logging_setup import setup_logging
from gateway.manifest_loader import load_manifest, manifest_path_from_env
from gateway.metrics import GateCounters, compute_metrics
from gateway.middleware import gate_requests
from gateway.rate_limiter import RateLimiter
from gateway.reputation import IpApiReputationClient


@dataclass
class GatewayServices:
    manifest: Manifest
    rate_limiter: RateLimiter
    reputation: ReputationClient
    store: AuditStore
    gate: AccessGate
    audit_logger: GateAuditLogger
    console: AuditConsole
    content: FileContentStore
    counters: GateCounters
    started_at: float = field(default_factory=time.time)


def build_services(
    manifest: Manifest,
    *,
    reputation: ReputationClient | None = None,
    store: AuditStore | None = None,
    rate_limiter: RateLimiter | None = None,
) -> GatewayServices:
    counters = GateCounters()
    rate_limiter = rate_limiter or RateLimiter(manifest.rate_limit)
    reputation = reputation or IpApiReputationClient.from_config(manifest.reputation)
    store = store or create_store(manifest.audit)

    return GatewayServices(
        manifest=manifest,
        rate_limiter=rate_limiter,
        reputation=reputation,
        store=store,
        gate=AccessGate(manifest.gate, rate_limiter, reputation, counters),
        audit_logger=GateAuditLogger(
            store,
            manifest.gate,
            timezone=manifest.runtime.timezone,
            write_timeout=manifest.audit.write_timeout_seconds,
            counters=counters,
        ),
        console=AuditConsole(store, manifest.gate),
        content=FileContentStore(manifest.content.directory),
        counters=counters,
    )


def create_app(
    manifest: Manifest | None = None,
    *,
    reputation: ReputationClient | None = None,
    store: AuditStore | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Build the gateway. Without a manifest, ``EDGEGATE_MANIFEST`` is loaded."""
    if manifest is None:
        manifest = load_manifest(manifest_path_from_env())

    setup_logging(manifest.logging)
    services = build_services(manifest, reputation=reputation, store=store, rate_limiter=rate_limiter)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "{} v{} starting (store={}, content={})",
            manifest.app.name,
            manifest.app.version,
            manifest.audit.backend.value,
            services.content.root,
        )
        if not manifest.gate.credential_value:
            logger.warning("No credential configured; every caller is treated as untrusted")
        yield
        services.store.close()
        logger.info("{} shut down", manifest.app.name)

    app = FastAPI(title="edgegate", version=manifest.app.version, lifespan=lifespan)
    app.state.services = services
    app.middleware("http")(gate_requests)

    @app.exception_handler(GateError)
    async def gate_error_handler(request: Request, exc: GateError) -> JSONResponse:
        return JSONResponse(exc.payload(), status_code=exc.status_code)

    _register_routes(app, manifest)
    return app


def _register_routes(app: FastAPI, manifest: Manifest) -> None:
    gate_cfg = manifest.gate

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Health probe; exempt from gating and audit."""
        services: GatewayServices = request.app.state.services
        return {
            "status": "ok",
            "version": manifest.app.version,
            "uptime_seconds": round(time.time() - services.started_at, 1),
            "store": manifest.audit.backend.value,
            "tracked_ips": len(services.rate_limiter),
            "counters": services.counters.snapshot(),
        }

    @app.get(gate_cfg.content_prefix.rstrip("/") + "/{filename}")
    def content(filename: str, request: Request) -> JSONResponse:
        """Return the named file's text as a JSON string."""
        services: GatewayServices = request.app.state.services
        return JSONResponse(services.content.read(filename))

    @app.get(gate_cfg.list_path)
    def console_list(request: Request):
        return request.app.state.services.console.render(request)

    @app.post(gate_cfg.delete_path)
    async def console_delete(request: Request) -> RedirectResponse:
        ids = await _delete_ids_from(request)
        services: GatewayServices = request.app.state.services
        await asyncio.to_thread(services.console.delete, ids)
        return RedirectResponse(gate_cfg.list_path, status_code=303)

    @app.get(gate_cfg.metrics_path)
    def console_metrics(request: Request) -> dict[str, Any]:
        services: GatewayServices = request.app.state.services
        result = compute_metrics(services.console.list_records())
        result["counters"] = services.counters.snapshot()
        return result


async def _delete_ids_from(request: Request) -> list[Any]:
    """Read ``deleteIds`` from a JSON body or a submitted form."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as exc:
            raise EmptyDeleteRequest("Request body is not valid JSON") from exc
        raw = body.get("deleteIds") if isinstance(body, dict) else None
    else:
        form = await request.form()
        raw = form.getlist("deleteIds")

    if raw is None:
        return []
    if isinstance(raw, (str, int)):
        return [raw]
    if not isinstance(raw, list):
        raise EmptyDeleteRequest("deleteIds must be a list of ids")
    return raw
