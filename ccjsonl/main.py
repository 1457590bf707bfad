"""ccjsonl FastAPI service: main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ccjsonl import config
from ccjsonl.db import connection, sqlite_migrations
from ccjsonl.db.factory import build_ingestion_context
from ccjsonl.ingestion.errors import WatcherError
from ccjsonl.ingestion.periodic import PeriodicBatchRunner
from ccjsonl.ingestion.watcher import start_watcher, stop_watcher
from ccjsonl.models import BatchProcessInput, WatcherConfig
from ccjsonl.observability import initialize as initialize_observability, shutdown as shutdown_observability
from ccjsonl.routers.ingestion import ingestion_router

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("ccjsonl")


def default_batch_input(target_dir: str | None = None) -> BatchProcessInput:
    return BatchProcessInput(
        targetDirectory=target_dir or config.WATCH_TARGET_DIR,
        pattern=config.BATCH_PATTERN,
        maxConcurrency=config.BATCH_MAX_CONCURRENCY,
        skipExisting=config.BATCH_SKIP_EXISTING,
    )


def default_watcher_config(target_dir: str | None = None) -> WatcherConfig:
    return WatcherConfig(
        targetDirectory=target_dir or config.WATCH_TARGET_DIR,
        pattern=config.BATCH_PATTERN,
        stabilityThreshold=config.WATCHER_STABILITY_MS,
        pollInterval=config.WATCHER_POLL_MS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("ccjsonl service starting up")
    initialize_observability(app)

    # 1. Initialize DB connection
    db = await connection.get_connection()

    # 2. Run migrations
    await sqlite_migrations.run_migrations(db)

    # 3. Ingestion context shared by the API, watcher and periodic runner
    context = build_ingestion_context(db)
    app.state.ingestion_context = context
    app.state.periodic_runner = None
    app.state.last_batch_result = None

    # 4. Background ingestion
    if config.WATCHER_ENABLED:
        try:
            await start_watcher(context, default_watcher_config())
        except WatcherError as exc:
            logger.error(f"File watcher not started: {exc}")

    if config.PERIODIC_ENABLED:
        runner = PeriodicBatchRunner(
            context,
            default_batch_input(),
            interval_seconds=config.BATCH_INTERVAL_MINUTES * 60,
        )
        runner.start()
        app.state.periodic_runner = runner

    yield

    logger.info("ccjsonl service shutting down")
    if app.state.periodic_runner is not None:
        await app.state.periodic_runner.stop()
    await stop_watcher(context)
    shutdown_observability(app)
    await connection.close_connection()


app = FastAPI(
    title="ccjsonl API",
    description="Ingests Claude Code JSONL transcripts into SQLite",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(ingestion_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    context = getattr(app.state, "ingestion_context", None)
    watcher = context.file_watcher if context else None
    return {
        "status": "ok",
        "db": "connected" if connection._connection else "disconnected",
        "watcher": "running" if watcher and watcher.is_watching else "stopped",
    }
