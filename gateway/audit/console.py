"""Audit console — list and bulk-delete audit records."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from fastapi import Request
from fastapi.templating import Jinja2Templates
from loguru import logger
from starlette.responses import Response

from contracts.audit import AuditRecord, AuditStore, DeleteOutcome
from contracts.errors import AdminDeleteFailed, EmptyDeleteRequest
from contracts.manifest import GateConfig

from gateway.metrics import parse_timestamp

_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


def _sort_key(record: AuditRecord) -> tuple[datetime, int, str]:
    ts = parse_timestamp(record.timestamp) or datetime.min
    try:
        numeric_id = int(record.id)
    except ValueError:
        numeric_id = -1
    return ts, numeric_id, record.id


class AuditConsole:
    """Listing and deletion surface over an ``AuditStore``."""

    def __init__(self, store: AuditStore, gate_config: GateConfig) -> None:
        self._store = store
        self._gate_config = gate_config
        self._templates = Jinja2Templates(directory=str(_TEMPLATES_DIR))

    def list_records(self) -> list[AuditRecord]:
        """Records newest first, sorted here so store order never matters."""
        return sorted(self._store.list_ordered(), key=_sort_key, reverse=True)

    def delete(self, ids: list[Any]) -> DeleteOutcome:
        """Attempt every id; raise ``AdminDeleteFailed`` if any could not be deleted."""
        unique = list(dict.fromkeys(str(i).strip() for i in ids if str(i).strip()))
        if not unique:
            raise EmptyDeleteRequest()

        outcome = self._store.delete_by_ids(unique)
        if outcome.deleted:
            logger.info("Deleted {} audit record(s): {}", len(outcome.deleted), ", ".join(outcome.deleted))
        if not outcome.ok:
            logger.error("Audit delete failed for {}", outcome.failed)
            raise AdminDeleteFailed(outcome.failed)
        return outcome

    def render(self, request: Request) -> Response:
        return self._templates.TemplateResponse(
            request,
            "console.html",
            {
                "records": self.list_records(),
                "list_path": self._gate_config.list_path,
                "delete_path": self._gate_config.delete_path,
            },
        )
