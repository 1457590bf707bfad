import asyncio
import unittest
from unittest.mock import patch

from ccjsonl.ingestion.errors import BatchProcessError
from ccjsonl.ingestion.periodic import PeriodicBatchRunner
from ccjsonl.models import BatchProcessResult


class PeriodicBatchRunnerTests(unittest.IsolatedAsyncioTestCase):
    def _runner(self, interval: float = 60) -> PeriodicBatchRunner:
        return PeriodicBatchRunner(object(), {"targetDirectory": "/logs"}, interval_seconds=interval)

    async def test_overlapping_run_is_skipped(self) -> None:
        release = asyncio.Event()
        calls = 0

        async def _slow_batch(context, batch_input):
            nonlocal calls
            calls += 1
            await release.wait()
            return BatchProcessResult(totalFiles=1, processedFiles=1, totalEntries=3)

        runner = self._runner()
        with patch("ccjsonl.ingestion.periodic.batch_process_log_files", side_effect=_slow_batch):
            first = asyncio.create_task(runner.run_once())
            await asyncio.sleep(0)
            self.assertTrue(runner.is_busy)
            second = await runner.run_once()
            release.set()
            first_result = await first

        self.assertIsNone(second)
        self.assertEqual(calls, 1)
        self.assertEqual(first_result.totalEntries, 3)
        self.assertIs(runner.last_result, first_result)
        self.assertFalse(runner.is_busy)

    async def test_batch_error_is_recorded_and_lock_released(self) -> None:
        runner = self._runner()
        with patch(
            "ccjsonl.ingestion.periodic.batch_process_log_files",
            side_effect=BatchProcessError("Invalid input"),
        ):
            with self.assertLogs("ccjsonl.ingestion", level="ERROR"):
                self.assertIsNone(await runner.run_once())

        self.assertEqual(runner.last_error, "Invalid input")
        self.assertFalse(runner.is_busy)

    async def test_start_runs_immediately_and_stop_cancels(self) -> None:
        ran = asyncio.Event()

        async def _batch(context, batch_input):
            ran.set()
            return BatchProcessResult()

        runner = self._runner(interval=3600)
        with patch("ccjsonl.ingestion.periodic.batch_process_log_files", side_effect=_batch):
            runner.start()
            self.assertTrue(runner.is_running)
            await asyncio.wait_for(ran.wait(), timeout=1)
            await runner.stop()

        self.assertFalse(runner.is_running)
        self.assertIsNotNone(runner.last_run_at)

    def test_interval_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            PeriodicBatchRunner(object(), {"targetDirectory": "/logs"}, interval_seconds=0)


if __name__ == "__main__":
    unittest.main()
