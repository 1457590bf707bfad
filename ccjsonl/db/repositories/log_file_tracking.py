"""SQLite implementation of LogFileTrackingRepository."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

import aiosqlite

from ccjsonl.db.repositories.base import repository_errors
from ccjsonl.ingestion.errors import RepositoryError


class SqliteLogFileTrackingRepository:
    """Track per-file processing state for incremental scanning."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def create(self, tracking_data: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        file_path = tracking_data["filePath"]
        with repository_errors("create log file tracking", conflict=f"Tracking for {file_path!r}"):
            await self.db.execute(
                """INSERT INTO log_file_tracking (
                    id, file_path, last_processed_at, file_size,
                    file_modified_at, checksum, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    str(uuid.uuid4()),
                    file_path,
                    tracking_data["lastProcessedAt"],
                    tracking_data.get("fileSize"),
                    tracking_data.get("fileModifiedAt"),
                    tracking_data.get("checksum"),
                    now, now,
                ),
            )
            await self.db.commit()
        return await self.get_by_file_path(file_path) or {}

    async def get_by_file_path(self, file_path: str) -> dict | None:
        return await self._get_one("file_path", file_path)

    async def update(self, tracking_id: str, tracking_data: dict) -> dict:
        return await self._update_where("id", tracking_id, tracking_data)

    async def update_by_file_path(self, file_path: str, tracking_data: dict) -> dict:
        return await self._update_where("file_path", file_path, tracking_data)

    async def delete(self, tracking_id: str) -> None:
        with repository_errors("delete log file tracking"):
            await self.db.execute("DELETE FROM log_file_tracking WHERE id = ?", (tracking_id,))
            await self.db.commit()

    async def delete_by_file_path(self, file_path: str) -> None:
        with repository_errors("delete log file tracking"):
            await self.db.execute("DELETE FROM log_file_tracking WHERE file_path = ?", (file_path,))
            await self.db.commit()

    async def list_all(self) -> list[dict]:
        with repository_errors("list log file tracking"):
            async with self.db.execute(
                "SELECT * FROM log_file_tracking ORDER BY file_path"
            ) as cur:
                return [dict(r) for r in await cur.fetchall()]

    async def _get_one(self, column: str, value: str) -> dict | None:
        with repository_errors("find log file tracking"):
            async with self.db.execute(
                f"SELECT * FROM log_file_tracking WHERE {column} = ?", (value,)
            ) as cur:
                row = await cur.fetchone()
        return dict(row) if row else None

    async def _update_where(self, column: str, value: str, tracking_data: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        with repository_errors("update log file tracking"):
            async with self.db.execute(
                f"""UPDATE log_file_tracking SET
                      last_processed_at = ?, file_size = ?, file_modified_at = ?,
                      checksum = ?, updated_at = ?
                    WHERE {column} = ?""",
                (
                    tracking_data["lastProcessedAt"],
                    tracking_data.get("fileSize"),
                    tracking_data.get("fileModifiedAt"),
                    tracking_data.get("checksum"),
                    now,
                    value,
                ),
            ) as cur:
                updated = cur.rowcount
            await self.db.commit()
        if not updated:
            raise RepositoryError(f"Log file tracking not found: {value}")
        return await self._get_one(column, value) or {}
