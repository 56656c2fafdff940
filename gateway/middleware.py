"""Gate middleware — runs every request through the access gate.

The middleware owns the mapping from verdict to response; the gate and
the audit logger stay free of HTTP types.
"""

from __future__ import annotations

import time
from typing import Collection

from fastapi import Request
from fastapi.responses import JSONResponse, Response

from contracts.errors import RateLimited, ReputationLookupFailed
from contracts.gate import GateDecision, GateRequest, GateVerdict
from contracts.manifest import GateConfig

from gateway.logging_setup import log_request


def client_ip(request: Request, trusted_proxies: Collection[str] = ()) -> str:
    """Caller address used for rate limiting and audit.

    ``X-Forwarded-For`` is read only when the socket peer is a trusted
    proxy; the rightmost hop not in ``trusted_proxies`` is the caller.
    """
    peer = request.client.host if request.client else "unknown"
    if peer not in trusted_proxies:
        return peer
    hops = [h.strip() for h in request.headers.get("x-forwarded-for", "").split(",")]
    for hop in reversed(hops):
        if hop and hop not in trusted_proxies:
            return hop
    return peer


def gate_request_from(request: Request, config: GateConfig) -> GateRequest:
    url = request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return GateRequest(
        client_ip=client_ip(request, config.trusted_proxies),
        method=request.method,
        path=request.url.path,
        url=url,
        credential=request.headers.get(config.credential_header),
        user_agent=request.headers.get("user-agent", ""),
        origin=request.headers.get("origin"),
    )


def _gate_response(decision: GateDecision, debug: bool) -> Response | None:
    """Response produced by the gate itself, or None to continue to routing."""
    verdict = decision.verdict
    if verdict == GateVerdict.RATE_LIMITED:
        err = RateLimited()
        return JSONResponse(err.payload(), status_code=err.status_code)
    if verdict == GateVerdict.FORBIDDEN:
        return Response(status_code=403)
    if verdict == GateVerdict.LOOKUP_FAILED:
        err = ReputationLookupFailed()
        body = err.payload()
        if debug and decision.reputation is not None:
            body["detail"] = decision.reputation.error
        return JSONResponse(body, status_code=err.status_code)
    if verdict == GateVerdict.ECHO:
        return JSONResponse(decision.reputation.raw if decision.reputation else {})
    return None


async def gate_requests(request: Request, call_next):
    """HTTP middleware: gate, audit, then respond or pass through."""
    services = request.app.state.services
    start = time.perf_counter()

    gate_req = gate_request_from(request, services.manifest.gate)
    decision = await services.gate.evaluate(gate_req)
    await services.audit_logger.record(gate_req, decision)

    response = _gate_response(decision, services.manifest.runtime.debug)
    if response is None:
        response = await call_next(request)

    log_request(
        gate_req.method,
        gate_req.url,
        response.status_code,
        decision.verdict.value,
        time.perf_counter() - start,
    )
    return response
