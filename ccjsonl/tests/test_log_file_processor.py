import json
import tempfile
import unittest
from pathlib import Path

import aiosqlite

from ccjsonl.db.factory import build_ingestion_context
from ccjsonl.db.sqlite_migrations import run_migrations
from ccjsonl.ingestion.errors import ProcessLogFileError, RepositoryError
from ccjsonl.ingestion.processor import process_log_file


def _base(uuid: str, timestamp: str, session_id: str = "sess-1", cwd: str = "/work/demo") -> dict:
    return {
        "uuid": uuid,
        "parentUuid": None,
        "timestamp": timestamp,
        "isSidechain": False,
        "userType": "external",
        "cwd": cwd,
        "sessionId": session_id,
        "version": "1.0.0",
    }


def _user(uuid: str, content, timestamp: str = "2025-01-01T00:00:00.000Z", role: str | None = "user", **kw) -> dict:
    message = {"content": content}
    if role:
        message["role"] = role
    return {**_base(uuid, timestamp, **kw), "type": "user", "message": message}


def _assistant(uuid: str, timestamp: str = "2025-01-01T00:00:01.000Z", **kw) -> dict:
    return {
        **_base(uuid, timestamp, **kw),
        "type": "assistant",
        "message": {
            "id": f"msg-{uuid}",
            "type": "message",
            "role": "assistant",
            "model": "claude-sonnet",
            "content": [{"type": "text", "text": "done"}],
            "stop_reason": "end_turn",
            "stop_sequence": None,
            "usage": {"input_tokens": 1, "output_tokens": 1},
        },
    }


def _system(uuid: str, content: str, timestamp: str = "2025-01-01T00:00:02.000Z", **kw) -> dict:
    return {**_base(uuid, timestamp, **kw), "type": "system", "content": content, "level": "info"}


def _summary(text: str) -> dict:
    return {"type": "summary", "summary": text, "leafUuid": "u1"}


class LogFileProcessorTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await run_migrations(self.db)
        self.context = build_ingestion_context(self.db)
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name)

    async def asyncTearDown(self) -> None:
        await self.db.close()

    def _write(self, lines: list, relative_path: str = "demo/sess-1.jsonl") -> str:
        path = self.root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            "\n".join(line if isinstance(line, str) else json.dumps(line) for line in lines),
            encoding="utf-8",
        )
        return str(path)

    async def _messages(self, session_id: str = "sess-1") -> list[dict]:
        return await self.context.message_repository.list(session_id=session_id, order_by="timestamp")

    async def test_user_and_assistant_entries_become_messages(self) -> None:
        path = self._write([
            _user("u1", "Add a login page"),
            _assistant("a1"),
        ])

        result = await process_log_file(self.context, path)

        self.assertEqual(result.entriesProcessed, 2)
        messages = await self._messages()
        self.assertEqual([(m["uuid"], m["role"]) for m in messages], [("u1", "user"), ("a1", "assistant")])
        self.assertEqual(messages[0]["content"], "Add a login page")
        self.assertEqual(json.loads(messages[1]["content"]), [{"type": "text", "text": "done"}])

        session = await self.context.session_repository.get_by_id("sess-1")
        self.assertEqual(session["cwd"], "/work/demo")
        self.assertEqual(session["last_message_at"], "2025-01-01T00:00:01.000Z")
        # No summary in the file: the first user message names the session.
        self.assertEqual(session["name"], "Add a login page")

        projects = await self.context.project_repository.list(name="demo")
        self.assertEqual(len(projects), 1)
        self.assertEqual(session["project_id"], projects[0]["id"])

    async def test_system_entry_is_stored_as_assistant_message(self) -> None:
        path = self._write([_system("s1", "boot ok")])

        await process_log_file(self.context, path)

        messages = await self._messages()
        self.assertEqual(len(messages), 1)
        self.assertEqual(messages[0]["role"], "assistant")
        self.assertEqual(messages[0]["content"], "[SYSTEM] boot ok")

    async def test_summary_names_session_without_creating_messages(self) -> None:
        path = self._write([
            _summary("Summary: The checkout flow refactor. More details follow."),
            _user("u1", "something else entirely"),
        ])

        result = await process_log_file(self.context, path)

        self.assertEqual(result.entriesProcessed, 2)
        self.assertEqual([m["uuid"] for m in await self._messages()], ["u1"])
        session = await self.context.session_repository.get_by_id("sess-1")
        self.assertEqual(session["name"], "checkout flow refactor")

    async def test_tagged_first_message_is_skipped_for_naming(self) -> None:
        path = self._write([
            _user("u1", "<command-name>/clear</command-name>", timestamp="2025-01-01T00:00:00.000Z"),
            _user("u2", "Fix the flaky test\nstack trace below", timestamp="2025-01-01T00:00:05.000Z"),
        ])

        await process_log_file(self.context, path)

        session = await self.context.session_repository.get_by_id("sess-1")
        self.assertEqual(session["name"], "Fix the flaky test")

    async def test_entry_without_role_is_skipped_but_file_succeeds(self) -> None:
        path = self._write([
            _user("u1", "no role here", role=None),
            _user("u2", "has a role"),
        ])

        with self.assertLogs("ccjsonl.ingestion", level="WARNING"):
            result = await process_log_file(self.context, path)

        self.assertEqual(result.entriesProcessed, 2)
        self.assertEqual([m["uuid"] for m in await self._messages()], ["u2"])

    async def test_repository_error_on_one_entry_does_not_stop_the_rest(self) -> None:
        messages = self.context.message_repository

        class _RejectingMessages:
            async def upsert(self, message_data: dict) -> dict:
                if message_data["uuid"] == "u2":
                    raise RepositoryError("disk full")
                return await messages.upsert(message_data)

            def __getattr__(self, name):
                return getattr(messages, name)

        self.context.message_repository = _RejectingMessages()
        path = self._write([
            _user("u1", "first"),
            _user("u2", "rejected", timestamp="2025-01-01T00:00:01.000Z"),
            _assistant("a1", timestamp="2025-01-01T00:00:02.000Z"),
            _system("s1", "boot ok", timestamp="2025-01-01T00:00:03.000Z"),
        ])

        with self.assertLogs("ccjsonl.ingestion", level="WARNING") as logs:
            result = await process_log_file(self.context, path)

        self.assertEqual(result.entriesProcessed, 4)
        self.assertTrue(any("u2" in record.getMessage() for record in logs.records))
        self.assertEqual([m["uuid"] for m in await self._messages()], ["u1", "a1", "s1"])
        self.assertIsNotNone(await self.context.log_file_tracking_repository.get_by_file_path(path))

    async def test_malformed_lines_do_not_fail_the_file(self) -> None:
        path = self._write([_user("u1", "hello"), "{broken", _user("u2", "again")])

        result = await process_log_file(self.context, path)

        self.assertEqual(result.entriesProcessed, 2)
        self.assertEqual(len(await self._messages()), 2)

    async def test_empty_file_succeeds_without_reconciliation(self) -> None:
        path = self._write([])

        result = await process_log_file(self.context, path)

        self.assertEqual(result.entriesProcessed, 0)
        self.assertEqual(await self.context.project_repository.list(), [])
        self.assertIsNotNone(await self.context.log_file_tracking_repository.get_by_file_path(path))

    async def test_reprocessing_is_idempotent(self) -> None:
        path = self._write([_user("u1", "hello"), _assistant("a1"), _system("s1", "boot ok")])

        await process_log_file(self.context, path)
        await process_log_file(self.context, path)

        self.assertEqual(await self.context.message_repository.count("sess-1"), 3)
        self.assertEqual(len(await self.context.project_repository.list()), 1)
        self.assertEqual(len(await self.context.session_repository.list()), 1)
        self.assertEqual(len(await self.context.log_file_tracking_repository.list_all()), 1)

    async def test_track_false_leaves_tracking_untouched(self) -> None:
        path = self._write([_user("u1", "hello")])

        await process_log_file(self.context, path, track=False)

        self.assertEqual(await self.context.log_file_tracking_repository.list_all(), [])

    async def test_unparseable_path_fails_the_file(self) -> None:
        with self.assertRaises(ProcessLogFileError):
            await process_log_file(self.context, str(self.root / "demo" / "missing.jsonl"))


if __name__ == "__main__":
    unittest.main()
