"""Repository factory wiring SQLite repositories into an ingestion context."""
from __future__ import annotations

from typing import Any

import aiosqlite

from ccjsonl.db.repositories import (
    SqliteLogFileTrackingRepository,
    SqliteMessageRepository,
    SqliteProjectRepository,
    SqliteSessionRepository,
)
from ccjsonl.ingestion.context import IngestionContext
from ccjsonl.ingestion.filesystem import LocalFileSystemManager
from ccjsonl.parsers.claude_log import ClaudeLogParser


def _require_sqlite(db: Any) -> aiosqlite.Connection:
    if not isinstance(db, aiosqlite.Connection):
        raise TypeError(f"Unsupported database connection: {type(db).__name__}")
    return db


def get_project_repository(db: Any):
    return SqliteProjectRepository(_require_sqlite(db))


def get_session_repository(db: Any):
    return SqliteSessionRepository(_require_sqlite(db))


def get_message_repository(db: Any):
    return SqliteMessageRepository(_require_sqlite(db))


def get_log_file_tracking_repository(db: Any):
    return SqliteLogFileTrackingRepository(_require_sqlite(db))


def build_ingestion_context(db: Any, *, tracking: bool = True) -> IngestionContext:
    return IngestionContext(
        project_repository=get_project_repository(db),
        session_repository=get_session_repository(db),
        message_repository=get_message_repository(db),
        log_parser=ClaudeLogParser(),
        file_system_manager=LocalFileSystemManager(),
        log_file_tracking_repository=get_log_file_tracking_repository(db) if tracking else None,
    )
