"""Collaborators shared by every ingestion operation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ccjsonl.db.repositories.base import (
    LogFileTrackingRepository,
    MessageRepository,
    ProjectRepository,
    SessionRepository,
)
from ccjsonl.ingestion.filesystem import FileSystemManager
from ccjsonl.parsers.claude_log import LogParser

if TYPE_CHECKING:
    from ccjsonl.db.file_watcher import FileWatcher


@dataclass
class IngestionContext:
    project_repository: ProjectRepository
    session_repository: SessionRepository
    message_repository: MessageRepository
    log_parser: LogParser
    file_system_manager: FileSystemManager
    # Without tracking every file counts as new and nothing is recorded.
    log_file_tracking_repository: Optional[LogFileTrackingRepository] = None
    file_watcher: Optional["FileWatcher"] = None
