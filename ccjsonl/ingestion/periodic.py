"""Run batch ingestion on a fixed interval without overlapping runs."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

from ccjsonl.date_utils import utc_now_iso
from ccjsonl.ingestion.batch import batch_process_log_files
from ccjsonl.ingestion.context import IngestionContext
from ccjsonl.ingestion.errors import IngestionError
from ccjsonl.models import BatchProcessInput, BatchProcessResult

logger = logging.getLogger("ccjsonl.ingestion")


class PeriodicBatchRunner:
    """Re-runs a batch every ``interval_seconds``.

    At most one batch is in flight; a tick that finds the previous run still
    going is skipped rather than queued.
    """

    def __init__(
        self,
        context: IngestionContext,
        batch_input: Union[BatchProcessInput, dict],
        interval_seconds: float,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.context = context
        self.batch_input = batch_input
        self.interval_seconds = interval_seconds
        self.last_result: Optional[BatchProcessResult] = None
        self.last_error: Optional[str] = None
        self.last_run_at: Optional[str] = None
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    async def run_once(self) -> Optional[BatchProcessResult]:
        if self._lock.locked():
            logger.info("Previous batch still running, skipping this run")
            return None

        async with self._lock:
            self.last_run_at = utc_now_iso()
            try:
                result = await batch_process_log_files(self.context, self.batch_input)
            except IngestionError as exc:
                self.last_error = str(exc)
                logger.error(f"Periodic batch failed: {exc}")
                return None

            self.last_result = result
            self.last_error = None
            logger.info(
                f"Periodic batch: {result.processedFiles} processed, "
                f"{result.skippedFiles} skipped, {result.failedFiles} failed "
                f"of {result.totalFiles} files"
            )
            return result

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.is_running:
            logger.warning("Periodic batch runner already running")
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Periodic batch runner started (every {self.interval_seconds:g}s)")

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Periodic batch runner stopped")
