"""Command line entry point: ``error-surface serve|scan|purge|clear|stats``.

Every command except ``serve`` prints one JSON document to stdout; logs go
to stderr.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections import Counter
from typing import List, Optional

from .config import ErrorSurfaceConfig, get_config
from .ingest.collector import LogCollector
from .storage.event_store import EventStore
from .storage.reconciler import MergeReconciler
from .utils.logging import setup_logging


def _emit(payload: dict) -> None:
    json.dump(payload, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


async def _open_store(config: ErrorSurfaceConfig) -> EventStore:
    store = EventStore.from_config(config)
    await store.open(config.database_file)
    return store


async def _scan(config: ErrorSurfaceConfig, lookback_days: int, limit: int) -> dict:
    store = await _open_store(config)
    try:
        collector = LogCollector(config=config)
        loop = asyncio.get_event_loop()
        fresh = await loop.run_in_executor(None, collector.collect_all, lookback_days)
        events = await MergeReconciler(store).reconcile(fresh, scan_days=lookback_days)
        categories = Counter(t.category for e in events for t in e.threats)
        return {
            "lookback_days": lookback_days,
            "collected": len(fresh),
            "events": len(events),
            "threat_events": sum(1 for e in events if e.threats),
            "threat_categories": dict(categories.most_common()),
            "severity_groups": dict(Counter(e.severity_group for e in events)),
            "source_errors": collector.last_errors,
            "store": store.current_location() or None,
            "store_error": store.last_error,
            "latest": [e.to_dict() for e in events[:limit]],
        }
    finally:
        await store.close()


async def _purge(config: ErrorSurfaceConfig) -> dict:
    store = await _open_store(config)
    try:
        removed = await store.purge_expired()
        return {"removed": removed, "store": store.current_location() or None, "error": store.last_error}
    finally:
        await store.close()


async def _clear(config: ErrorSurfaceConfig) -> dict:
    store = await _open_store(config)
    try:
        cleared = await store.clear_all()
        return {"cleared": cleared, "store": store.current_location() or None, "error": store.last_error}
    finally:
        await store.close()


async def _stats(config: ErrorSurfaceConfig) -> dict:
    store = await _open_store(config)
    try:
        return await store.stats()
    finally:
        await store.close()


def run_serve(args: argparse.Namespace, config: ErrorSurfaceConfig) -> int:
    import uvicorn

    from .main import create_app

    setup_logging(
        debug=config.debug,
        log_dir=config.log_dir,
        log_max_bytes=config.log_max_bytes,
        log_backup_count=config.log_backup_count,
    )
    uvicorn.run(
        create_app(config),
        host=args.host or config.host,
        port=args.port or config.port,
        log_level="debug" if config.debug else "info",
    )
    return 0


def run_scan(args: argparse.Namespace, config: ErrorSurfaceConfig) -> int:
    days = args.days if args.days is not None else config.lookback_days
    result = asyncio.run(_scan(config, days, args.limit))
    _emit(result)
    return 1 if result["store_error"] else 0


def run_purge(args: argparse.Namespace, config: ErrorSurfaceConfig) -> int:
    result = asyncio.run(_purge(config))
    _emit(result)
    return 1 if result["error"] else 0


def run_clear(args: argparse.Namespace, config: ErrorSurfaceConfig) -> int:
    if not args.yes:
        print("Refusing to delete all stored events without --yes", file=sys.stderr)
        return 2
    result = asyncio.run(_clear(config))
    _emit(result)
    return 0 if result["cleared"] else 1


def run_stats(args: argparse.Namespace, config: ErrorSurfaceConfig) -> int:
    result = asyncio.run(_stats(config))
    _emit(result)
    return 0 if result["is_open"] else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="error-surface",
        description="Collect journal and kernel errors, flag threats, keep a deduplicated event store.",
    )
    parser.add_argument("--db", help="Event store path (overrides ERRORSURFACE_DATABASE_PATH)")
    parser.add_argument("--retention-days", type=int, help="Retention for newly stored events")
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")
    subparsers = parser.add_subparsers(dest="cmd", required=True)

    sp = subparsers.add_parser("serve", help="Run the HTTP service with scan and live workers")
    sp.add_argument("--host")
    sp.add_argument("--port", type=int)
    sp.set_defaults(func=run_serve)

    sp = subparsers.add_parser("scan", help="Collect once, store, print a summary")
    sp.add_argument("--days", type=int, help="Lookback in days (default from config)")
    sp.add_argument("--limit", type=int, default=20, help="Number of latest events to include")
    sp.set_defaults(func=run_scan)

    sp = subparsers.add_parser("purge", help="Delete expired events")
    sp.set_defaults(func=run_purge)

    sp = subparsers.add_parser("clear", help="Delete all events and scan history")
    sp.add_argument("--yes", action="store_true", help="Confirm deletion")
    sp.set_defaults(func=run_clear)

    sp = subparsers.add_parser("stats", help="Show store location, size and counts")
    sp.set_defaults(func=run_stats)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if args.db:
        overrides["database_path"] = args.db
    if args.retention_days is not None:
        overrides["retention_days"] = args.retention_days
    if args.debug:
        overrides["debug"] = True
    config = get_config().model_copy(update=overrides) if overrides else get_config()

    if args.cmd != "serve":
        setup_logging(debug=config.debug, log_dir=None, stream=sys.stderr)
    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
