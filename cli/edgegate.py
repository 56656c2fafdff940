"""edgegate CLI — validate manifests, run the gateway, and manage audit records."""

from __future__ import annotations

import argparse
import json
import sys

from gateway.manifest_loader import DEFAULT_MANIFEST, MANIFEST_ENV, load_manifest


def _load_or_exit(path: str):
    try:
        return load_manifest(path)
    except FileNotFoundError:
        print(f"Error: manifest not found: {path}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"Error: invalid manifest: {exc}", file=sys.stderr)
        sys.exit(1)


def cmd_validate(args: argparse.Namespace) -> None:
    """Validate an edgegate.yaml manifest."""
    manifest = _load_or_exit(args.manifest)
    gate = manifest.gate

    print(f"Manifest OK: {manifest.app.name} v{manifest.app.version}")
    print(f"  Content:       {gate.content_prefix}/<file> from {manifest.content.directory}")
    print(f"  Console:       {gate.list_path}, {gate.delete_path}, {gate.metrics_path}")
    print(f"  Exempt paths:  {', '.join(gate.exempt_paths) or '(none)'}")
    print(f"  Rate limit:    {manifest.rate_limit.max_requests} per {manifest.rate_limit.window_seconds}s")
    print(f"  Reputation:    {manifest.reputation.base_url} (timeout {manifest.reputation.timeout_seconds}s)")
    print(f"  Audit store:   {manifest.audit.backend.value} {manifest.audit.path}")

    if not gate.credential_value:
        print("  Warning: no credential_value set; every caller will be untrusted")
    overlap = set(gate.exempt_paths) & gate.console_paths
    if overlap:
        print(f"  Warning: console paths are also exempt and will not be audited: {', '.join(sorted(overlap))}")


def cmd_run(args: argparse.Namespace) -> None:
    """Start the gateway server."""
    import os

    manifest = _load_or_exit(args.manifest)
    os.environ[MANIFEST_ENV] = args.manifest

    print(f"Starting {manifest.app.name}...")
    print(f"  Manifest: {args.manifest}")
    print(f"  Host:     {args.host}")
    print(f"  Port:     {args.port}")
    print()

    import uvicorn

    uvicorn.run(
        "gateway.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


def _console(manifest):
    from gateway.audit.console import AuditConsole
    from gateway.audit.store import create_store

    return AuditConsole(create_store(manifest.audit), manifest.gate)


def cmd_records(args: argparse.Namespace) -> None:
    """List audit records, newest first."""
    manifest = _load_or_exit(args.manifest)
    records = _console(manifest).list_records()[: args.limit]

    if not records:
        print("No audit records.")
        return

    for record in records:
        if args.json:
            print(record.model_dump_json())
        else:
            where = "/".join((record.country, record.region, record.city))
            print(f"{record.id:>6}  {record.timestamp}  {record.client_ip:15s}  {record.method:10s}  {record.url}  [{where}]")


def cmd_purge(args: argparse.Namespace) -> None:
    """Delete audit records by id."""
    from contracts.errors import GateError

    manifest = _load_or_exit(args.manifest)
    try:
        outcome = _console(manifest).delete(args.ids)
    except GateError as exc:
        print(f"Error: {exc.detail}", file=sys.stderr)
        sys.exit(1)
    print(f"Deleted {len(outcome.deleted)} record(s).")


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="edgegate",
        description="edgegate — HTTP edge filter with IP reputation and audit log",
    )
    sub = parser.add_subparsers(dest="command")

    # validate
    p_val = sub.add_parser("validate", help="Validate an edgegate.yaml manifest")
    p_val.add_argument("manifest", nargs="?", default=DEFAULT_MANIFEST, help="Path to manifest")
    p_val.set_defaults(func=cmd_validate)

    # run
    p_run = sub.add_parser("run", help="Start the gateway server")
    p_run.add_argument("manifest", nargs="?", default=DEFAULT_MANIFEST, help="Path to manifest")
    p_run.add_argument("--host", default="127.0.0.1", help="Bind address")
    p_run.add_argument("--port", type=int, default=8080, help="Port")
    p_run.add_argument("--reload", action="store_true", help="Enable auto-reload")
    p_run.set_defaults(func=cmd_run)

    # records
    p_rec = sub.add_parser("records", help="List audit records")
    p_rec.add_argument("manifest", nargs="?", default=DEFAULT_MANIFEST, help="Path to manifest")
    p_rec.add_argument("--limit", "-n", type=int, default=20, help="Max records")
    p_rec.add_argument("--json", action="store_true", help="Output raw JSON")
    p_rec.set_defaults(func=cmd_records)

    # purge
    p_purge = sub.add_parser("purge", help="Delete audit records by id")
    p_purge.add_argument("ids", nargs="+", help="Record ids to delete")
    p_purge.add_argument("--manifest", "-m", default=DEFAULT_MANIFEST, help="Path to manifest")
    p_purge.set_defaults(func=cmd_purge)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
