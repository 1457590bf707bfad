"""Batch ingestion of every matching log file under a directory."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Union

from pydantic import ValidationError

from ccjsonl.ingestion.context import IngestionContext
from ccjsonl.ingestion.errors import BatchProcessError, IngestionError
from ccjsonl.ingestion.processor import process_log_file
from ccjsonl.ingestion.tracking import check_file_processing_status
from ccjsonl.ingestion.walker import find_matching_files
from ccjsonl.models import (
    BatchFileError,
    BatchProcessFileResult,
    BatchProcessInput,
    BatchProcessResult,
)
from ccjsonl.observability import record_batch_run, start_span

logger = logging.getLogger("ccjsonl.ingestion")


def _validate_input(raw: Union[BatchProcessInput, dict]) -> BatchProcessInput:
    if isinstance(raw, BatchProcessInput):
        return raw
    try:
        return BatchProcessInput.model_validate(raw)
    except ValidationError as exc:
        raise BatchProcessError("Invalid input", exc) from exc


async def _should_skip(context: IngestionContext, file_path: str) -> bool:
    try:
        status = await check_file_processing_status(context, file_path)
    except IngestionError as exc:
        logger.warning(f"Tracking check failed for {file_path}, processing anyway: {exc}")
        return False
    if not status.shouldProcess:
        logger.debug(f"Skipping {file_path} ({status.reason})")
        return True
    logger.debug(f"Processing {file_path} ({status.reason})")
    return False


async def _process_one(
    context: IngestionContext,
    file_path: str,
    skip_existing: bool,
    semaphore: asyncio.Semaphore,
) -> BatchProcessFileResult:
    async with semaphore:
        if skip_existing and await _should_skip(context, file_path):
            return BatchProcessFileResult(filePath=file_path, status="skipped")
        try:
            result = await process_log_file(context, file_path)
        except IngestionError as exc:
            logger.error(f"Failed to process {file_path}: {exc}")
            return BatchProcessFileResult(filePath=file_path, status="failed", error=str(exc))
        return BatchProcessFileResult(
            filePath=file_path,
            status="success",
            entriesProcessed=result.entriesProcessed,
        )


def _summarize(file_results: list[BatchProcessFileResult]) -> BatchProcessResult:
    result = BatchProcessResult(totalFiles=len(file_results), fileResults=file_results)
    for file_result in file_results:
        if file_result.status == "success":
            result.processedFiles += 1
            result.totalEntries += file_result.entriesProcessed
        elif file_result.status == "skipped":
            result.skippedFiles += 1
        else:
            result.failedFiles += 1
            result.errors.append(
                BatchFileError(filePath=file_result.filePath, error=file_result.error or "Unknown error")
            )
    return result


async def batch_process_log_files(
    context: IngestionContext,
    batch_input: Union[BatchProcessInput, dict],
) -> BatchProcessResult:
    """Process every file under ``targetDirectory`` matching ``pattern``.

    At most ``maxConcurrency`` files are in flight at once. Per-file failures
    are reported in the result; BatchProcessError is raised only for invalid
    input or an unexpected failure of the run itself.
    """
    params = _validate_input(batch_input)
    started = time.monotonic()

    try:
        with start_span(
            "ingestion.batch",
            {"batch.target": params.targetDirectory, "batch.max_concurrency": params.maxConcurrency},
        ):
            files = await find_matching_files(
                context.file_system_manager, params.targetDirectory, params.pattern
            )
            logger.info(f"Found {len(files)} files matching {params.pattern} in {params.targetDirectory}")
            if not files:
                record_batch_run("empty")
                return BatchProcessResult()

            semaphore = asyncio.Semaphore(params.maxConcurrency)
            file_results = await asyncio.gather(
                *(_process_one(context, path, params.skipExisting, semaphore) for path in files)
            )
    except Exception as exc:
        record_batch_run("error")
        raise BatchProcessError(f"Batch processing failed: {exc}", exc) from exc

    result = _summarize(list(file_results))
    record_batch_run(
        "partial" if result.failedFiles else "success",
        processed=result.processedFiles,
        skipped=result.skippedFiles,
        failed=result.failedFiles,
    )
    logger.info(
        f"Batch complete in {time.monotonic() - started:.2f}s: "
        f"{result.processedFiles} processed, {result.skippedFiles} skipped, "
        f"{result.failedFiles} failed, {result.totalEntries} entries"
    )
    return result
