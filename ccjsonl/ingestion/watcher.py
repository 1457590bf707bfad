"""Wire the file watcher to per-file ingestion."""
from __future__ import annotations

import logging
from typing import Union

from pydantic import ValidationError

from ccjsonl.db.file_watcher import FileWatcher
from ccjsonl.ingestion.context import IngestionContext
from ccjsonl.ingestion.errors import IngestionError, WatcherError
from ccjsonl.ingestion.processor import process_log_file
from ccjsonl.models import FileChangeEvent, WatcherConfig

logger = logging.getLogger("ccjsonl.watcher")


def make_change_handler(context: IngestionContext):
    async def handle(event: FileChangeEvent) -> None:
        if event.type == "unlink":
            logger.info(f"Log file removed: {event.filePath}")
            return
        try:
            result = await process_log_file(context, event.filePath)
        except IngestionError as exc:
            logger.error(f"Failed to process {event.type} event for {event.filePath}: {exc}")
            return
        logger.info(f"Processed {result.entriesProcessed} entries after {event.type}: {event.filePath}")

    return handle


async def start_watcher(context: IngestionContext, config: Union[WatcherConfig, dict]) -> FileWatcher:
    if not isinstance(config, WatcherConfig):
        try:
            config = WatcherConfig.model_validate(config)
        except ValidationError as exc:
            raise WatcherError("Invalid watcher config", exc) from exc
    if context.file_watcher is None:
        context.file_watcher = FileWatcher()
    try:
        await context.file_watcher.start(config, make_change_handler(context))
    except WatcherError:
        raise
    except Exception as exc:
        raise WatcherError(f"Failed to start watcher: {exc}", exc) from exc
    return context.file_watcher


async def stop_watcher(context: IngestionContext) -> None:
    if context.file_watcher is None:
        return
    try:
        await context.file_watcher.stop()
    except Exception as exc:
        raise WatcherError(f"Failed to stop watcher: {exc}", exc) from exc
