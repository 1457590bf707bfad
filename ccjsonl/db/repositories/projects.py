"""SQLite implementation of ProjectRepository."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import aiosqlite

from ccjsonl.db.repositories.base import repository_errors


class SqliteProjectRepository:
    """Projects keyed by a generated id, unique by name and by path."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def create(self, project_data: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        project_id = project_data.get("id") or str(uuid.uuid4())
        name = project_data["name"]
        with repository_errors("create project", conflict=f"Project {name!r}"):
            await self.db.execute(
                """INSERT INTO projects (id, name, path, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (project_id, name, project_data.get("path") or name, now, now),
            )
            await self.db.commit()
        return await self.get_by_id(project_id) or {}

    async def upsert(self, project_data: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        name = project_data["name"]
        with repository_errors("upsert project"):
            await self.db.execute(
                """INSERT INTO projects (id, name, path, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(path) DO UPDATE SET
                     name=excluded.name, updated_at=excluded.updated_at
                """,
                (
                    project_data.get("id") or str(uuid.uuid4()),
                    name, project_data.get("path") or name, now, now,
                ),
            )
            await self.db.commit()
        return await self.get_by_path(project_data.get("path") or name) or {}

    async def get_by_id(self, project_id: str) -> dict | None:
        with repository_errors("find project"):
            async with self.db.execute(
                "SELECT * FROM projects WHERE id = ?", (project_id,)
            ) as cur:
                row = await cur.fetchone()
        return dict(row) if row else None

    async def get_by_path(self, path: str) -> dict | None:
        with repository_errors("find project"):
            async with self.db.execute(
                "SELECT * FROM projects WHERE path = ?", (path,)
            ) as cur:
                row = await cur.fetchone()
        return dict(row) if row else None

    async def list(
        self, offset: int = 0, limit: int = 100,
        name: str | None = None, path: str | None = None,
    ) -> list[dict]:
        clauses: list[str] = []
        params: list = []
        if name is not None:
            clauses.append("name = ?")
            params.append(name)
        if path is not None:
            clauses.append("path = ?")
            params.append(path)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        query = f"SELECT * FROM projects {where} ORDER BY created_at ASC LIMIT ? OFFSET ?"

        with repository_errors("list projects"):
            async with self.db.execute(query, (*params, limit, offset)) as cur:
                return [dict(r) for r in await cur.fetchall()]

    async def delete(self, project_id: str) -> None:
        with repository_errors("delete project"):
            await self.db.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            await self.db.commit()
