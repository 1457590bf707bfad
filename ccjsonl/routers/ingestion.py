"""Ingestion operations API: status, on-demand batches, single files, tracking."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError

from ccjsonl import config
from ccjsonl.ingestion.batch import batch_process_log_files
from ccjsonl.ingestion.context import IngestionContext
from ccjsonl.ingestion.errors import BatchProcessError, IngestionError
from ccjsonl.ingestion.processor import process_log_file
from ccjsonl.models import BatchProcessResult, ProcessLogFileResult

logger = logging.getLogger("ccjsonl.api")

ingestion_router = APIRouter(prefix="/api/ingestion", tags=["ingestion"])


class BatchRequest(BaseModel):
    targetDirectory: Optional[str] = None
    pattern: Optional[str] = None
    maxConcurrency: Optional[int] = None
    skipExisting: Optional[bool] = None


class ProcessFileRequest(BaseModel):
    filePath: str = Field(..., min_length=1)


def _get_context(request: Request) -> IngestionContext:
    context = getattr(request.app.state, "ingestion_context", None)
    if not context:
        raise HTTPException(status_code=503, detail="Ingestion context not initialized")
    return context


def _batch_summary(result: Optional[BatchProcessResult]) -> Optional[dict]:
    if result is None:
        return None
    return result.model_dump(exclude={"fileResults"})


@ingestion_router.get("/status")
async def get_ingestion_status(request: Request):
    """Watcher and periodic runner state plus the most recent batch summary."""
    context = _get_context(request)
    watcher = context.file_watcher
    runner = getattr(request.app.state, "periodic_runner", None)
    last_batch = getattr(request.app.state, "last_batch_result", None)

    periodic = None
    if runner is not None:
        periodic = {
            "running": runner.is_running,
            "busy": runner.is_busy,
            "intervalSeconds": runner.interval_seconds,
            "lastRunAt": runner.last_run_at,
            "lastError": runner.last_error,
            "lastResult": _batch_summary(runner.last_result),
        }
        if last_batch is None:
            last_batch = runner.last_result

    return {
        "status": "ok",
        "targetDirectory": config.WATCH_TARGET_DIR,
        "watcher": {
            "running": bool(watcher and watcher.is_watching),
            "targetDirectory": watcher.config.targetDirectory if watcher and watcher.config else None,
        },
        "periodic": periodic,
        "lastBatch": _batch_summary(last_batch),
    }


@ingestion_router.post("/batch")
async def trigger_batch(request: Request, body: BatchRequest) -> BatchProcessResult:
    """Run a batch in the foreground and return the full report."""
    context = _get_context(request)
    batch_input = {
        "targetDirectory": body.targetDirectory if body.targetDirectory is not None else config.WATCH_TARGET_DIR,
        "pattern": body.pattern or config.BATCH_PATTERN,
        "maxConcurrency": body.maxConcurrency if body.maxConcurrency is not None else config.BATCH_MAX_CONCURRENCY,
        "skipExisting": body.skipExisting if body.skipExisting is not None else config.BATCH_SKIP_EXISTING,
    }
    try:
        result = await batch_process_log_files(context, batch_input)
    except BatchProcessError as exc:
        if isinstance(exc.cause, ValidationError):
            raise HTTPException(status_code=400, detail=f"{exc.message}: {exc.cause.error_count()} validation errors")
        logger.error(f"Batch request failed: {exc}")
        raise HTTPException(status_code=500, detail=exc.message)

    request.app.state.last_batch_result = result
    return result


@ingestion_router.post("/files")
async def process_file(request: Request, body: ProcessFileRequest) -> ProcessLogFileResult:
    """Process one log file immediately."""
    context = _get_context(request)
    try:
        return await process_log_file(context, body.filePath)
    except IngestionError as exc:
        raise HTTPException(status_code=400, detail=exc.message)


@ingestion_router.get("/tracking")
async def list_tracking(request: Request):
    """Every tracked log file with its last processed state."""
    context = _get_context(request)
    repo = context.log_file_tracking_repository
    if repo is None:
        return {"status": "ok", "count": 0, "items": []}
    try:
        items = await repo.list_all()
    except IngestionError as exc:
        raise HTTPException(status_code=500, detail=exc.message)
    return {"status": "ok", "count": len(items), "items": items}
