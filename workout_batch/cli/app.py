from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from workout_batch.cli import output as out
from workout_batch.cli.config import (
    Config,
    config_exists,
    config_path_display,
    load_config,
    save_config,
)

DESCRIPTION = """\
workout-batch: apply workout operations to many templates at once

Create, update, delete, duplicate, import and export workout templates in
bulk, and distribute players and teams across generated sessions.

Request documents are JSON files with an "operation" key, optionally
wrapped with "directory", "skills" and seed "templates" sections."""


# ── Infrastructure helpers ──────────────────────────────────────────


def _config_to_dict(cfg: Config, document: dict[str, Any]) -> dict[str, Any]:
    """Merge CLI settings and a request document into a library config dict."""
    return {
        "store": cfg.store_section(),
        "directory": document.get("directory") or {},
        "skills": document.get("skills") or {},
        "snapshots": {"retention_hours": cfg.snapshot_retention_hours},
    }


def _read_document(path: str) -> dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        out.error(f"Could not read {path}: {exc}")
        sys.exit(1)
    if not isinstance(data, dict):
        out.error(f"{path} must contain a JSON object")
        sys.exit(1)
    return data


async def _build_orchestrator(cfg: Config, document: dict[str, Any]):
    from workout_batch import BatchOrchestrator
    from workout_batch.exceptions import CollaboratorUnavailableError
    from workout_batch.models import WorkoutTemplate

    orchestrator = BatchOrchestrator.from_config(_config_to_dict(cfg, document))
    try:
        await orchestrator.init()
        await orchestrator.store.ping()
    except CollaboratorUnavailableError as exc:
        out.error(f"Store unavailable: {exc}")
        sys.exit(1)

    # Seed templates let a single in-memory invocation act on real data.
    for raw in document.get("templates") or []:
        template = WorkoutTemplate.model_validate(raw)
        if await orchestrator.store.get_template(template.id) is None:
            await orchestrator.store.create_template(template)
    return orchestrator


# ── plan ────────────────────────────────────────────────────────────


async def cmd_plan(args: argparse.Namespace) -> None:
    """Preview how a pool of targets would be split into sessions."""
    from workout_batch.models import BatchAssignmentTarget, BulkModeConfig

    document = _read_document(args.file)
    body = document.get("request", document)
    targets = [BatchAssignmentTarget.model_validate(t) for t in body.get("targets", [])]
    bulk = BulkModeConfig.model_validate(body.get("bulk") or {})

    orchestrator = await _build_orchestrator(load_config(), document)
    try:
        plan = await orchestrator.plan_distribution(targets, bulk)
    finally:
        await orchestrator.close()

    out.header(f"Distribution ({plan.strategy}, {len(plan)} session(s))")
    for err in plan.errors:
        out.error(err)
    for summary in plan:
        start = summary.start_time.isoformat() if summary.start_time else "unscheduled"
        out.info(
            f"{out.bold(summary.session_name)}  "
            f"{summary.total_players} player(s)  {out.dim(start)}"
        )
        if summary.team_ids:
            out.kv("teams", ", ".join(summary.team_ids), indent=4)
        if args.players and summary.player_ids:
            out.kv("players", ", ".join(summary.player_ids), indent=4)
    for warning in plan.warnings:
        out.warn(warning)
    print()
    if not plan.ok:
        sys.exit(1)


# ── run ─────────────────────────────────────────────────────────────


async def cmd_run(args: argparse.Namespace) -> None:
    """Execute a request document against the configured store."""
    from workout_batch.exceptions import BatchOrchestrationError, BatchValidationError
    from workout_batch.facade import BatchExportResponse, request_from_dict

    document = _read_document(args.file)
    try:
        request = request_from_dict(document.get("request", document))
    except BatchValidationError as exc:
        _print_validation(exc)
        sys.exit(1)
    if args.validate_only:
        request.options = request.options.model_copy(update={"validate_only": True})

    orchestrator = await _build_orchestrator(load_config(), document)
    try:
        response = await orchestrator.submit(request)
    except BatchValidationError as exc:
        _print_validation(exc)
        sys.exit(1)
    except BatchOrchestrationError as exc:
        out.error(f"Run failed: {exc}")
        for failure in exc.rollback_failures:
            out.error(f"rollback {failure.item_id}: {failure.error}")
        sys.exit(1)
    finally:
        await orchestrator.close()

    result = response.result
    out.header(f"{request.operation_type} ({response.status or 'validate-only'})")
    if response.operation_id:
        out.kv("Operation", response.operation_id)
    if response.validation is not None and response.validation.errors:
        for issue in response.validation.errors:
            where = f"{issue.item_id}: " if issue.item_id else ""
            out.warn(f"{where}{issue.message}")
    out.kv("Items", out.counts(result.success_count, result.failure_count, result.total))
    if result.pending_item_ids:
        out.kv("Pending", len(result.pending_item_ids))
    if result.rolled_back:
        out.warn("Batch was rolled back")
    for failure in result.failed:
        out.error(f"{failure.item_id} [{failure.code}] {failure.error}")
    for failure in result.rollback_failures:
        out.error(f"rollback {failure.item_id}: {failure.error}")
    for warning in response.warnings:
        out.warn(warning)

    if isinstance(response, BatchExportResponse) and response.payload:
        if args.out:
            Path(args.out).write_bytes(response.payload)
            out.success(f"Exported {result.success_count} template(s) to {args.out}")
        else:
            sys.stdout.buffer.write(response.payload)
            print()
    print()


def _print_validation(exc: Any) -> None:
    out.error("Request rejected")
    for issue in exc.result.errors:
        out.info(f"[{issue.code}] {issue.message}")


# ── config ──────────────────────────────────────────────────────────


async def cmd_config_show(args: argparse.Namespace) -> None:
    """Display current configuration."""
    cfg = load_config()

    out.header(f"Configuration ({config_path_display()})")
    print()
    if cfg.uses_postgres:
        out.kv("Store", f"postgres ({cfg.db_host}:{cfg.db_port}/{cfg.db_name})")
    else:
        out.kv("Store", "memory (in-memory, no persistence)")
    out.kv("Snapshot retention", f"{cfg.snapshot_retention_hours:g}h")

    print()
    out.info("To change settings:")
    out.next_step("workout-batch config set-store postgres", "use PostgreSQL")
    out.next_step("workout-batch config set-store memory", "switch to in-memory")
    print()


async def cmd_config_set_store(args: argparse.Namespace) -> None:
    """Configure the store backend (postgres or memory)."""
    cfg = load_config() if config_exists() else Config()

    if args.backend == "memory":
        cfg.store_provider = "memory"
        path = save_config(cfg)
        out.success(f"Store set to in-memory. Config written to {path}")
        out.info("Data will only persist for the duration of a single command.")
        return

    cfg.store_provider = "postgres"
    cfg.db_host = input(f"  Database host [{cfg.db_host}]: ").strip() or cfg.db_host
    port = input(f"  Database port [{cfg.db_port}]: ").strip() or str(cfg.db_port)
    cfg.db_port = int(port)
    cfg.db_name = input(f"  Database name [{cfg.db_name}]: ").strip() or cfg.db_name
    cfg.db_user = input(f"  Database user [{cfg.db_user}]: ").strip() or cfg.db_user
    cfg.db_password = (
        input(f"  Database password [{cfg.db_password}]: ").strip() or cfg.db_password
    )

    path = save_config(cfg)
    out.success(f"PostgreSQL configured. Config written to {path}")

    from workout_batch import BatchOrchestrator

    orchestrator = BatchOrchestrator.from_config(_config_to_dict(cfg, {}))
    try:
        await orchestrator.init()
        out.success("Database initialised")
    except Exception as exc:
        out.warn(f"Could not initialise database: {exc}")
        out.info("You can retry later with: workout-batch config set-store postgres")
    finally:
        await orchestrator.close()


async def cmd_config_path(args: argparse.Namespace) -> None:
    """Print the config file path."""
    print(config_path_display())


# ── Parser ──────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workout-batch",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )
    sub = parser.add_subparsers(dest="command", title="commands")

    p_plan = sub.add_parser("plan", help="Preview a session distribution")
    p_plan.add_argument("file", help="JSON document with targets and bulk settings")
    p_plan.add_argument(
        "--players", action="store_true", help="List player ids per session"
    )

    p_run = sub.add_parser("run", help="Execute a batch request document")
    p_run.add_argument("file", help="JSON request document")
    p_run.add_argument(
        "--validate-only",
        action="store_true",
        help="Only validate the request; nothing is changed",
    )
    p_run.add_argument("--out", metavar="PATH", help="Write export payloads here")

    p_cfg = sub.add_parser("config", help="View and change settings")
    cfg_sub = p_cfg.add_subparsers(dest="config_command", title="config commands")
    cfg_sub.add_parser("show", help="Show current settings")
    p_cfg_store = cfg_sub.add_parser("set-store", help="Configure the store backend")
    p_cfg_store.add_argument(
        "backend",
        choices=["postgres", "memory"],
        help="Store backend to use",
    )
    cfg_sub.add_parser("path", help="Print config file location")

    return parser


# ── Dispatch ────────────────────────────────────────────────────────

_CommandHandler = Callable[[argparse.Namespace], Coroutine[Any, Any, None]]

_COMMAND_MAP: dict[str, _CommandHandler] = {
    "plan": cmd_plan,
    "run": cmd_run,
}

_CONFIG_MAP: dict[str, _CommandHandler] = {
    "show": cmd_config_show,
    "set-store": cmd_config_set_store,
    "path": cmd_config_path,
}


def main() -> None:
    import logging

    parser = _build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="  %(name)s: %(message)s",
        )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    if not args.command:
        parser.print_help()
        return

    if args.command == "config":
        if not args.config_command:
            parser.parse_args(["config", "--help"])
            return
        handler = _CONFIG_MAP.get(args.config_command)
    else:
        handler = _COMMAND_MAP.get(args.command)

    if handler is None:
        parser.print_help()
        return

    try:
        asyncio.run(handler(args))
    except KeyboardInterrupt:
        print()
