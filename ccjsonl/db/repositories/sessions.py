"""SQLite implementation of SessionRepository."""
from __future__ import annotations

from datetime import datetime, timezone

import aiosqlite

from ccjsonl.db.repositories.base import repository_errors
from ccjsonl.ingestion.errors import RepositoryError


class SqliteSessionRepository:
    """Sessions keyed by the transcript's own session id."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def create(self, session_data: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        session_id = session_data["id"]
        with repository_errors("create session", conflict=f"Session {session_id!r}"):
            await self.db.execute(
                """INSERT INTO sessions (
                    id, project_id, name, cwd, last_message_at, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    session_id,
                    session_data.get("projectId"),
                    session_data.get("name"),
                    session_data.get("cwd") or "/tmp",
                    session_data.get("lastMessageAt"),
                    now, now,
                ),
            )
            await self.db.commit()
        return await self.get_by_id(session_id) or {}

    async def get_by_id(self, session_id: str) -> dict | None:
        with repository_errors("find session"):
            async with self.db.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,)
            ) as cur:
                row = await cur.fetchone()
        return dict(row) if row else None

    async def update_cwd(self, session_id: str, cwd: str) -> None:
        await self._update(session_id, "cwd", cwd)

    async def update_last_message_at(self, session_id: str, timestamp: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        # Out-of-order entries must not move the marker backwards.
        with repository_errors("update session last_message_at"):
            await self.db.execute(
                """UPDATE sessions SET last_message_at = ?, updated_at = ?
                   WHERE id = ? AND (last_message_at IS NULL OR last_message_at < ?)""",
                (timestamp, now, session_id, timestamp),
            )
            await self.db.commit()

    async def update_name(self, session_id: str, name: str) -> None:
        await self._update(session_id, "name", name)

    async def list(
        self, offset: int = 0, limit: int = 100, project_id: str | None = None,
    ) -> list[dict]:
        if project_id:
            query = "SELECT * FROM sessions WHERE project_id = ? ORDER BY created_at ASC LIMIT ? OFFSET ?"
            params: tuple = (project_id, limit, offset)
        else:
            query = "SELECT * FROM sessions ORDER BY created_at ASC LIMIT ? OFFSET ?"
            params = (limit, offset)

        with repository_errors("list sessions"):
            async with self.db.execute(query, params) as cur:
                return [dict(r) for r in await cur.fetchall()]

    async def _update(self, session_id: str, column: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with repository_errors(f"update session {column}"):
            async with self.db.execute(
                f"UPDATE sessions SET {column} = ?, updated_at = ? WHERE id = ?",
                (value, now, session_id),
            ) as cur:
                updated = cur.rowcount
            await self.db.commit()
        if not updated:
            raise RepositoryError(f"Session not found: {session_id}")
