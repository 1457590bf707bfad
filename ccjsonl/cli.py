#!/usr/bin/env python3
"""Command line entry point for transcript ingestion.

Usage:
  ccjsonl batch
  ccjsonl batch --target-dir ~/.claude/projects -c 10 --no-skip-existing
  ccjsonl watch
  ccjsonl periodic --interval-minutes 30
  ccjsonl migrate
  ccjsonl serve --port 8000
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os

from ccjsonl import config
from ccjsonl.db import connection, sqlite_migrations
from ccjsonl.db.factory import build_ingestion_context
from ccjsonl.ingestion.batch import batch_process_log_files
from ccjsonl.ingestion.errors import BatchProcessError, WatcherError
from ccjsonl.ingestion.periodic import PeriodicBatchRunner
from ccjsonl.ingestion.watcher import start_watcher, stop_watcher
from ccjsonl.models import BatchProcessInput, WatcherConfig

logger = logging.getLogger("ccjsonl")


async def _open_context():
    db = await connection.get_connection()
    await sqlite_migrations.run_migrations(db)
    return build_ingestion_context(db)


def _batch_input(args: argparse.Namespace) -> dict:
    return {
        "targetDirectory": os.path.expanduser(args.target_dir),
        "pattern": args.pattern,
        "maxConcurrency": args.max_concurrency,
        "skipExisting": args.skip_existing,
    }


async def _run_batch(args: argparse.Namespace) -> int:
    context = await _open_context()
    try:
        result = await batch_process_log_files(context, _batch_input(args))
    except BatchProcessError as exc:
        logger.error(f"Batch failed: {exc}")
        return 1
    finally:
        await connection.close_connection()

    print(
        f"files={result.totalFiles} processed={result.processedFiles} "
        f"skipped={result.skippedFiles} failed={result.failedFiles} "
        f"entries={result.totalEntries}"
    )
    for error in result.errors:
        print(f"  FAILED {error.filePath}: {error.error}")
    return 1 if result.failedFiles else 0


async def _run_watch(args: argparse.Namespace) -> int:
    context = await _open_context()
    watcher_config = WatcherConfig(
        targetDirectory=os.path.expanduser(args.target_dir),
        pattern=args.pattern,
        ignoreInitial=args.ignore_initial,
        stabilityThreshold=config.WATCHER_STABILITY_MS,
        pollInterval=config.WATCHER_POLL_MS,
    )
    try:
        await start_watcher(context, watcher_config)
    except WatcherError as exc:
        logger.error(f"Watcher failed to start: {exc}")
        await connection.close_connection()
        return 1

    logger.info("Watching for changes, press Ctrl+C to stop")
    try:
        await asyncio.Event().wait()
    finally:
        await stop_watcher(context)
        await connection.close_connection()
    return 0


async def _run_periodic(args: argparse.Namespace) -> int:
    context = await _open_context()
    runner = PeriodicBatchRunner(
        context,
        BatchProcessInput.model_validate(_batch_input(args)),
        interval_seconds=args.interval_minutes * 60,
    )
    runner.start()
    try:
        await asyncio.Event().wait()
    finally:
        await runner.stop()
        await connection.close_connection()
    return 0


async def _run_migrate(_args: argparse.Namespace) -> int:
    db = await connection.get_connection()
    try:
        await sqlite_migrations.run_migrations(db)
    finally:
        await connection.close_connection()
    print(f"Database ready: {config.DB_PATH}")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("ccjsonl.main:app", host=args.host, port=args.port, log_level=config.LOG_LEVEL.lower())
    return 0


def _add_batch_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--target-dir", default=config.WATCH_TARGET_DIR, help="Directory to scan (default: %(default)s)")
    parser.add_argument("-p", "--pattern", default=config.BATCH_PATTERN, help="File pattern (default: %(default)s)")
    parser.add_argument(
        "-c", "--max-concurrency", type=int, default=config.BATCH_MAX_CONCURRENCY,
        help="Files processed at once (default: %(default)s)",
    )
    parser.add_argument(
        "-s", "--skip-existing", action=argparse.BooleanOptionalAction, default=config.BATCH_SKIP_EXISTING,
        help="Skip files unchanged since they were last processed",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ccjsonl", description="Ingest Claude Code JSONL transcripts into SQLite")
    sub = parser.add_subparsers(dest="command", required=True)

    batch = sub.add_parser("batch", help="Process every matching log file once")
    _add_batch_options(batch)
    batch.set_defaults(handler=_run_batch)

    watch = sub.add_parser("watch", help="Process log files as they change")
    watch.add_argument("--target-dir", default=config.WATCH_TARGET_DIR, help="Directory to watch (default: %(default)s)")
    watch.add_argument("-p", "--pattern", default=config.BATCH_PATTERN, help="File pattern (default: %(default)s)")
    watch.add_argument("--ignore-initial", action="store_true", help="Do not process files that already exist")
    watch.set_defaults(handler=_run_watch)

    periodic = sub.add_parser("periodic", help="Run a batch on a fixed interval")
    _add_batch_options(periodic)
    periodic.add_argument(
        "--interval-minutes", type=float, default=config.BATCH_INTERVAL_MINUTES,
        help="Minutes between runs (default: %(default)s)",
    )
    periodic.set_defaults(handler=_run_periodic)

    migrate = sub.add_parser("migrate", help="Create or upgrade the database schema")
    migrate.set_defaults(handler=_run_migrate)

    serve = sub.add_parser("serve", help="Run the ingestion API")
    serve.add_argument("--host", default=config.HOST)
    serve.add_argument("--port", type=int, default=config.PORT)
    serve.set_defaults(handler=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.command == "serve":
        return _serve(args)
    try:
        return asyncio.run(args.handler(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
