# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from offline_sync.app import build_app
from offline_sync.config import configure_logging
from offline_sync.domain.model import EntityId

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from offline_sync.app import OfflineSyncApp
    from offline_sync.domain.model import Entity, Payload
    from offline_sync.domain.reconciler import SyncRun
    from offline_sync.domain.status import SyncStatus

log = logging.getLogger(__name__)

_ENTITY_ID_HELP = "Entity id (tmp:..., srv:... or a bare server id)"


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Offline-first entity store with outbox sync")
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Force offline mode; writes are queued and no remote call is made",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List locally stored entities")

    create = subparsers.add_parser("create", help="Create an entity")
    create.add_argument("--data", type=str, required=True, help="JSON object with the record")

    update = subparsers.add_parser("update", help="Update an entity")
    update.add_argument("entity_id", type=str, help=_ENTITY_ID_HELP)
    update.add_argument("--data", type=str, required=True, help="JSON object with changed fields")

    delete = subparsers.add_parser("delete", help="Delete an entity")
    delete.add_argument("entity_id", type=str, help=_ENTITY_ID_HELP)

    subparsers.add_parser("sync", help="Run one synchronization pass now")
    subparsers.add_parser("status", help="Show the synchronization status")
    subparsers.add_parser("pending", help="List queued mutations in replay order")
    subparsers.add_parser("attention", help="List mutations that need attention")

    dismiss = subparsers.add_parser("dismiss", help="Acknowledge an attention item")
    dismiss.add_argument("sequence", type=int, help="Sequence number of the item")

    subparsers.add_parser("watch", help="Follow connectivity and sync until interrupted")

    return parser.parse_args(list(argv))


def _parse_entity_id(value: str) -> EntityId:
    text = value.strip()
    if ":" in text:
        return EntityId.parse(text)
    if not text:
        raise ValueError("Entity id must not be empty")
    return EntityId.persistent(text)


def _parse_payload(value: str) -> Payload:
    try:
        payload = json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ValueError("--data must be a JSON object")
    return payload


def _format_entity(entity: Entity) -> str:
    return f"{entity.id}\t{json.dumps(entity.data, sort_keys=True)}"


def _format_status(status: SyncStatus) -> str:
    lines = [
        f"pending: {status.pending_count}",
        f"syncing: {status.is_syncing}",
        f"last success: {status.last_success_at.isoformat() if status.last_success_at else '-'}",
        f"needs attention: {status.needs_attention}",
        f"stalled: {status.stalled}",
    ]
    if status.last_error is not None:
        lines.append(f"last error: [{status.last_error.kind}] {status.last_error.message}")
    return "\n".join(lines)


def _format_run(run: SyncRun | None) -> str:
    if run is None:
        return "Sync skipped (offline or already running)"
    summary = (
        f"Synced {len(run.succeeded)}, resolved locally {len(run.resolved_locally)}, "
        f"discarded {len(run.discarded)}"
    )
    if run.failure is not None:
        summary += f"; halted: {run.failure.message}"
    return summary


def _watch(app: OfflineSyncApp) -> None:
    app.service.subscribe(lambda status: log.info("Status: %s", status))
    app.service.start()
    app.poller.start()
    log.info("Watching connectivity; press Ctrl+C to stop")
    threading.Event().wait()


def _dispatch(app: OfflineSyncApp, args: argparse.Namespace) -> int:  # noqa: C901, PLR0911
    service = app.service
    if args.command == "list":
        for entity in service.list_entities():
            print(_format_entity(entity))
        return 0
    if args.command == "create":
        print(_format_entity(service.create(_parse_payload(args.data))))
        return 0
    if args.command == "update":
        updated = service.update(_parse_entity_id(args.entity_id), _parse_payload(args.data))
        print(_format_entity(updated))
        return 0
    if args.command == "delete":
        service.delete(_parse_entity_id(args.entity_id))
        return 0
    if args.command == "sync":
        run = service.sync_now()
        print(_format_run(run))
        return 1 if run is not None and run.failure is not None else 0
    if args.command == "status":
        print(_format_status(service.get_status()))
        return 0
    if args.command == "pending":
        for entry in service.pending_entries():
            print(f"{entry.sequence}\t{entry.action}\t{entry.entity_id}\tattempts={entry.attempts}")
        return 0
    if args.command == "attention":
        for item in service.attention_items():
            print(
                f"{item.sequence}\t{item.action}\t{item.entity_id}\t{item.reason}\t{item.message}"
            )
        return 0
    if args.command == "dismiss":
        if not service.acknowledge(args.sequence):
            print(f"No attention item with sequence {args.sequence}", file=sys.stderr)
            return 1
        return 0
    if args.command == "watch":
        _watch(app)
        return 0
    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
        if parsed_args.command in {"update", "delete"}:
            _parse_entity_id(parsed_args.entity_id)
        if parsed_args.command in {"create", "update"}:
            _parse_payload(parsed_args.data)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    app: OfflineSyncApp | None = None
    try:
        app = build_app(force_offline=parsed_args.offline)
        code = _dispatch(app, parsed_args)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    finally:
        if app is not None:
            app.close()
    if code:
        sys.exit(code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def entrypoint() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    entrypoint()
