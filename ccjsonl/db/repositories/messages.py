"""SQLite implementation of MessageRepository."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import aiosqlite

from ccjsonl.db.repositories.base import repository_errors


class SqliteMessageRepository:
    """Messages upserted on the transcript entry uuid."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def upsert(self, message_data: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        with repository_errors("upsert message"):
            await self.db.execute(
                """INSERT INTO messages (
                    id, session_id, role, content, timestamp, raw_data,
                    uuid, parent_uuid, cwd, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(uuid) DO UPDATE SET
                    session_id=excluded.session_id, role=excluded.role,
                    content=excluded.content, timestamp=excluded.timestamp,
                    raw_data=excluded.raw_data, parent_uuid=excluded.parent_uuid,
                    cwd=excluded.cwd, updated_at=excluded.updated_at
                """,
                (
                    str(uuid.uuid4()),
                    message_data["sessionId"],
                    message_data["role"],
                    message_data.get("content"),
                    message_data["timestamp"],
                    message_data.get("rawData", "{}"),
                    message_data["uuid"],
                    message_data.get("parentUuid"),
                    message_data.get("cwd", ""),
                    now, now,
                ),
            )
            await self.db.commit()
        return await self.get_by_uuid(message_data["uuid"]) or {}

    async def get_by_id(self, message_id: str) -> dict | None:
        with repository_errors("find message"):
            async with self.db.execute(
                "SELECT * FROM messages WHERE id = ?", (message_id,)
            ) as cur:
                row = await cur.fetchone()
        return dict(row) if row else None

    async def get_by_uuid(self, uuid: str) -> dict | None:
        with repository_errors("find message"):
            async with self.db.execute(
                "SELECT * FROM messages WHERE uuid = ?", (uuid,)
            ) as cur:
                row = await cur.fetchone()
        return dict(row) if row else None

    async def list(
        self, offset: int = 0, limit: int = 100,
        session_id: str | None = None, role: str | None = None,
        order_by: str = "created_at",
    ) -> list[dict]:
        # Whitelist sortable columns
        if order_by not in {"created_at", "timestamp"}:
            order_by = "created_at"

        clauses: list[str] = []
        params: list = []
        if session_id is not None:
            clauses.append("session_id = ?")
            params.append(session_id)
        if role is not None:
            clauses.append("role = ?")
            params.append(role)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        query = f"SELECT * FROM messages {where} ORDER BY {order_by} ASC LIMIT ? OFFSET ?"

        with repository_errors("list messages"):
            async with self.db.execute(query, (*params, limit, offset)) as cur:
                return [dict(r) for r in await cur.fetchall()]

    async def count(self, session_id: str | None = None) -> int:
        with repository_errors("count messages"):
            if session_id:
                async with self.db.execute(
                    "SELECT COUNT(*) FROM messages WHERE session_id = ?", (session_id,)
                ) as cur:
                    row = await cur.fetchone()
            else:
                async with self.db.execute("SELECT COUNT(*) FROM messages") as cur:
                    row = await cur.fetchone()
        return row[0] if row else 0
