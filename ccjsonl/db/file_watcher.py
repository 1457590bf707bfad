"""File watcher service using watchfiles.

Monitors the transcript directory and hands add/change/unlink events for
matching files to an async handler.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Awaitable, Callable, Optional

from watchfiles import Change, awatch

from ccjsonl.ingestion.errors import WatcherError
from ccjsonl.ingestion.filesystem import LocalFileSystemManager
from ccjsonl.ingestion.walker import find_matching_files, pattern_suffix
from ccjsonl.models import FileChangeEvent, WatcherConfig

logger = logging.getLogger("ccjsonl.watcher")

FileChangeHandler = Callable[[FileChangeEvent], Awaitable[None]]

_EVENT_TYPES = {
    Change.added: "add",
    Change.modified: "change",
    Change.deleted: "unlink",
}


class FileWatcher:
    """Background file watcher that forwards matching file events.

    Uses `watchfiles` (Rust-accelerated) for efficient watching; events for
    one file are debounced by the configured stability threshold.
    """

    def __init__(self):
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._config: Optional[WatcherConfig] = None

    @property
    def is_watching(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def config(self) -> Optional[WatcherConfig]:
        return self._config

    async def start(self, config: WatcherConfig, handler: FileChangeHandler) -> None:
        """Start watching ``config.targetDirectory`` in a background task."""
        if self.is_watching:
            raise WatcherError("File watcher is already running")
        if not os.path.isdir(config.targetDirectory):
            raise WatcherError(f"Watch target is not a directory: {config.targetDirectory}")

        self._config = config
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop(config, handler, self._stop_event))
        logger.info(f"File watcher started for {config.targetDirectory} ({config.pattern})")

    async def stop(self) -> None:
        """Stop the file watcher and wait for its loop to exit."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._stop_event = None
        logger.info("File watcher stopped")

    async def _emit(self, handler: FileChangeHandler, event: FileChangeEvent) -> None:
        try:
            await handler(event)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Handler failed for {event.type} {event.filePath}: {e}")

    async def _emit_existing(self, config: WatcherConfig, handler: FileChangeHandler) -> None:
        files = await find_matching_files(LocalFileSystemManager(), config.targetDirectory, config.pattern)
        logger.info(f"Emitting {len(files)} existing files from {config.targetDirectory}")
        for file_path in files:
            await self._emit(handler, FileChangeEvent(type="add", filePath=file_path))

    async def _collect_changes(
        self,
        config: WatcherConfig,
        stop_event: asyncio.Event,
        queue: asyncio.Queue,
    ) -> None:
        try:
            async for changes in awatch(
                config.targetDirectory,
                debounce=config.stabilityThreshold,
                step=config.pollInterval,
                stop_event=stop_event,
            ):
                await queue.put(classify_changes(changes, config.pattern))
        finally:
            queue.put_nowait(None)

    async def _watch_loop(
        self,
        config: WatcherConfig,
        handler: FileChangeHandler,
        stop_event: asyncio.Event,
    ) -> None:
        try:
            if not config.persistent:
                if not config.ignoreInitial:
                    await self._emit_existing(config, handler)
                return

            # Changes arriving during the initial emission are queued and replayed after it.
            queue: asyncio.Queue = asyncio.Queue()
            collector = asyncio.create_task(self._collect_changes(config, stop_event, queue))
            try:
                if not config.ignoreInitial:
                    await self._emit_existing(config, handler)
                while True:
                    events = await queue.get()
                    if events is None:
                        break
                    for event in events:
                        await self._emit(handler, event)
            finally:
                collector.cancel()
                try:
                    await collector
                except asyncio.CancelledError:
                    pass
        except asyncio.CancelledError:
            logger.info("File watcher task cancelled")
        except Exception as e:  # noqa: BLE001
            logger.error(f"File watcher error: {e}")


def classify_changes(changes: set[tuple[Change, str]], pattern: str) -> list[FileChangeEvent]:
    """Turn raw watchfiles changes into events for files matching ``pattern``."""
    suffix = pattern_suffix(pattern)
    events = []
    for change_type, path_str in sorted(changes, key=lambda change: change[1]):
        if suffix and not path_str.endswith(suffix):
            continue
        event_type = _EVENT_TYPES.get(change_type)
        if event_type:
            events.append(FileChangeEvent(type=event_type, filePath=path_str))
    return events
