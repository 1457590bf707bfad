"""Repository package for database access."""

from .projects import SqliteProjectRepository
from .sessions import SqliteSessionRepository
from .messages import SqliteMessageRepository
from .log_file_tracking import SqliteLogFileTrackingRepository

__all__ = [
    "SqliteProjectRepository",
    "SqliteSessionRepository",
    "SqliteMessageRepository",
    "SqliteLogFileTrackingRepository",
]
