"""Repository ports consumed by the ingestion pipeline.

Rows are plain dicts keyed by column name. Creates raise AlreadyExistsError
when a uniqueness constraint rejects the row; every other storage failure
surfaces as RepositoryError.
"""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

from ccjsonl.ingestion.errors import AlreadyExistsError, RepositoryError


@contextmanager
def repository_errors(action: str, *, conflict: str = "") -> Iterator[None]:
    """Translate sqlite errors raised inside the block into repository errors."""
    try:
        yield
    except sqlite3.IntegrityError as exc:
        if conflict and "UNIQUE constraint failed" in str(exc):
            raise AlreadyExistsError(f"{conflict} already exists", exc) from exc
        raise RepositoryError(f"Failed to {action}: {exc}", exc) from exc
    except sqlite3.Error as exc:
        raise RepositoryError(f"Failed to {action}: {exc}", exc) from exc


class ProjectRepository(Protocol):
    async def create(self, project_data: dict) -> dict: ...

    async def upsert(self, project_data: dict) -> dict: ...

    async def get_by_id(self, project_id: str) -> Optional[dict]: ...

    async def get_by_path(self, path: str) -> Optional[dict]: ...

    async def list(
        self, offset: int = 0, limit: int = 100,
        name: Optional[str] = None, path: Optional[str] = None,
    ) -> list[dict]: ...

    async def delete(self, project_id: str) -> None: ...


class SessionRepository(Protocol):
    async def create(self, session_data: dict) -> dict: ...

    async def get_by_id(self, session_id: str) -> Optional[dict]: ...

    async def update_cwd(self, session_id: str, cwd: str) -> None: ...

    async def update_last_message_at(self, session_id: str, timestamp: str) -> None: ...

    async def update_name(self, session_id: str, name: str) -> None: ...

    async def list(
        self, offset: int = 0, limit: int = 100, project_id: Optional[str] = None,
    ) -> list[dict]: ...


class MessageRepository(Protocol):
    async def upsert(self, message_data: dict) -> dict: ...

    async def get_by_id(self, message_id: str) -> Optional[dict]: ...

    async def get_by_uuid(self, uuid: str) -> Optional[dict]: ...

    async def list(
        self, offset: int = 0, limit: int = 100,
        session_id: Optional[str] = None, role: Optional[str] = None,
        order_by: str = "created_at",
    ) -> list[dict]: ...


class LogFileTrackingRepository(Protocol):
    async def create(self, tracking_data: dict) -> dict: ...

    async def get_by_file_path(self, file_path: str) -> Optional[dict]: ...

    async def update(self, tracking_id: str, tracking_data: dict) -> dict: ...

    async def update_by_file_path(self, file_path: str, tracking_data: dict) -> dict: ...

    async def delete(self, tracking_id: str) -> None: ...

    async def delete_by_file_path(self, file_path: str) -> None: ...

    async def list_all(self) -> list[dict]: ...
