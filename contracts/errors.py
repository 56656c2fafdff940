"""Request-scoped error taxonomy.

Every error carries the HTTP status it maps to; none of them terminates
the process.
"""

from __future__ import annotations


class GateError(Exception):
    status_code = 500
    detail = "Internal error"

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)

    def payload(self) -> dict:
        return {"error": self.detail}


class RateLimited(GateError):
    status_code = 429
    detail = "Too many requests, please try again later."


class ReputationLookupFailed(GateError):
    status_code = 502
    detail = "Reputation lookup failed"


class AuditWriteFailed(GateError):
    """Internal only; logged and counted, never returned to a caller."""


class EmptyDeleteRequest(GateError):
    status_code = 400
    detail = "deleteIds must name at least one record"


class AdminDeleteFailed(GateError):
    status_code = 500

    def __init__(self, failed: dict[str, str]) -> None:
        self.failed = dict(failed)
        first_id, reason = next(iter(self.failed.items()))
        super().__init__(f"Failed to delete record {first_id}: {reason}")

    def payload(self) -> dict:
        return {"error": self.detail, "failed_ids": list(self.failed)}


class ContentNotFound(GateError):
    status_code = 404
    detail = "File not found."


class ContentReadFailed(GateError):
    status_code = 500
    detail = "Unable to read the file."
