import unittest

import aiosqlite

from ccjsonl.db.repositories import (
    SqliteLogFileTrackingRepository,
    SqliteMessageRepository,
    SqliteProjectRepository,
    SqliteSessionRepository,
)
from ccjsonl.db.sqlite_migrations import run_migrations
from ccjsonl.ingestion.errors import AlreadyExistsError, RepositoryError, is_already_exists_error


class _RepositoryTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await run_migrations(self.db)

    async def asyncTearDown(self) -> None:
        await self.db.close()


class ProjectRepositoryTests(_RepositoryTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.repo = SqliteProjectRepository(self.db)

    async def test_create_defaults_path_to_name_and_lists_by_name(self) -> None:
        created = await self.repo.create({"name": "demo"})
        self.assertEqual(created["path"], "demo")

        listed = await self.repo.list(name="demo")
        self.assertEqual([p["id"] for p in listed], [created["id"]])
        self.assertEqual(await self.repo.list(name="other"), [])

    async def test_duplicate_create_raises_already_exists(self) -> None:
        await self.repo.create({"name": "demo", "path": "demo"})
        with self.assertRaises(AlreadyExistsError) as ctx:
            await self.repo.create({"name": "demo", "path": "demo"})
        self.assertTrue(is_already_exists_error(ctx.exception))

    async def test_upsert_keeps_single_row_per_path(self) -> None:
        first = await self.repo.upsert({"name": "demo", "path": "/p/demo"})
        second = await self.repo.upsert({"name": "demo", "path": "/p/demo"})
        self.assertEqual(first["id"], second["id"])
        self.assertEqual(len(await self.repo.list()), 1)

    async def test_delete(self) -> None:
        created = await self.repo.create({"name": "demo"})
        await self.repo.delete(created["id"])
        self.assertIsNone(await self.repo.get_by_id(created["id"]))


class SessionRepositoryTests(_RepositoryTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.project = await SqliteProjectRepository(self.db).create({"name": "demo"})
        self.repo = SqliteSessionRepository(self.db)

    async def test_create_defaults_and_list_by_project(self) -> None:
        session = await self.repo.create({"id": "s1", "projectId": self.project["id"]})
        self.assertEqual(session["cwd"], "/tmp")
        self.assertIsNone(session["name"])

        listed = await self.repo.list(project_id=self.project["id"])
        self.assertEqual([s["id"] for s in listed], ["s1"])

    async def test_duplicate_session_id_raises_already_exists(self) -> None:
        await self.repo.create({"id": "s1", "projectId": self.project["id"]})
        with self.assertRaises(AlreadyExistsError):
            await self.repo.create({"id": "s1", "projectId": self.project["id"]})

    async def test_last_message_at_only_moves_forward(self) -> None:
        await self.repo.create({"id": "s1", "projectId": self.project["id"]})
        await self.repo.update_last_message_at("s1", "2025-01-02T00:00:00.000Z")
        await self.repo.update_last_message_at("s1", "2025-01-01T00:00:00.000Z")

        session = await self.repo.get_by_id("s1")
        self.assertEqual(session["last_message_at"], "2025-01-02T00:00:00.000Z")

    async def test_updates_on_missing_session_raise(self) -> None:
        with self.assertRaises(RepositoryError):
            await self.repo.update_name("missing", "Name")
        with self.assertRaises(RepositoryError):
            await self.repo.update_cwd("missing", "/x")

    async def test_update_name_and_cwd(self) -> None:
        await self.repo.create({"id": "s1", "projectId": self.project["id"]})
        await self.repo.update_name("s1", "Fix login")
        await self.repo.update_cwd("s1", "/work/demo")

        session = await self.repo.get_by_id("s1")
        self.assertEqual((session["name"], session["cwd"]), ("Fix login", "/work/demo"))


class MessageRepositoryTests(_RepositoryTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        project = await SqliteProjectRepository(self.db).create({"name": "demo"})
        await SqliteSessionRepository(self.db).create({"id": "s1", "projectId": project["id"]})
        self.repo = SqliteMessageRepository(self.db)

    def _message(self, uuid: str, content: str, timestamp: str, role: str = "user") -> dict:
        return {
            "sessionId": "s1",
            "role": role,
            "content": content,
            "timestamp": timestamp,
            "rawData": "{}",
            "uuid": uuid,
            "parentUuid": None,
            "cwd": "/work",
        }

    async def test_upsert_by_uuid_is_idempotent(self) -> None:
        first = await self.repo.upsert(self._message("u1", "hello", "2025-01-01T00:00:00.000Z"))
        second = await self.repo.upsert(self._message("u1", "hello again", "2025-01-01T00:00:00.000Z"))

        self.assertEqual(first["id"], second["id"])
        self.assertEqual(second["content"], "hello again")
        self.assertEqual(await self.repo.count("s1"), 1)

    async def test_list_filters_and_orders_by_timestamp(self) -> None:
        await self.repo.upsert(self._message("u2", "second", "2025-01-01T00:00:02.000Z"))
        await self.repo.upsert(self._message("u1", "first", "2025-01-01T00:00:01.000Z"))
        await self.repo.upsert(self._message("a1", "reply", "2025-01-01T00:00:03.000Z", role="assistant"))

        ordered = await self.repo.list(session_id="s1", order_by="timestamp")
        self.assertEqual([m["uuid"] for m in ordered], ["u1", "u2", "a1"])

        users = await self.repo.list(session_id="s1", role="user", order_by="timestamp")
        self.assertEqual([m["uuid"] for m in users], ["u1", "u2"])


class LogFileTrackingRepositoryTests(_RepositoryTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.repo = SqliteLogFileTrackingRepository(self.db)

    async def test_create_update_and_delete_by_path(self) -> None:
        created = await self.repo.create({
            "filePath": "/logs/a.jsonl",
            "lastProcessedAt": "2025-01-01T00:00:00.000Z",
            "fileSize": 10,
            "fileModifiedAt": 1700000000.5,
        })
        self.assertEqual(created["file_size"], 10)

        updated = await self.repo.update_by_file_path("/logs/a.jsonl", {
            "lastProcessedAt": "2025-01-02T00:00:00.000Z",
            "fileSize": 20,
            "fileModifiedAt": 1700000100.0,
        })
        self.assertEqual(updated["id"], created["id"])
        self.assertEqual(updated["file_size"], 20)

        await self.repo.delete_by_file_path("/logs/a.jsonl")
        self.assertIsNone(await self.repo.get_by_file_path("/logs/a.jsonl"))

    async def test_update_missing_record_raises(self) -> None:
        with self.assertRaises(RepositoryError):
            await self.repo.update_by_file_path("/logs/none.jsonl", {"lastProcessedAt": "x"})

    async def test_list_all_is_sorted_by_path(self) -> None:
        for path in ("/logs/b.jsonl", "/logs/a.jsonl"):
            await self.repo.create({"filePath": path, "lastProcessedAt": "2025-01-01T00:00:00.000Z"})
        self.assertEqual(
            [r["file_path"] for r in await self.repo.list_all()],
            ["/logs/a.jsonl", "/logs/b.jsonl"],
        )


if __name__ == "__main__":
    unittest.main()
