"""Exceptions raised by the ingestion pipeline and its repositories."""
from __future__ import annotations

from typing import Any


class IngestionError(Exception):
    """Base error carrying a human message and the underlying cause."""

    def __init__(self, message: str, cause: Any = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class RepositoryError(IngestionError):
    """A repository read or write failed."""


class AlreadyExistsError(RepositoryError):
    """A create hit a uniqueness constraint (row written by someone else first)."""


class FileSystemError(IngestionError):
    """A directory listing or stat failed."""


class LogParserError(IngestionError):
    """A log file could not be turned into a ParsedLogFile."""


class FileDiscoveryError(IngestionError):
    """Scanning the target directory failed outright."""


class TrackingError(IngestionError):
    """Reading or writing log file tracking state failed."""


class ReconciliationError(IngestionError):
    """Project or session could not be ensured for a log file."""


class ProcessLogFileError(IngestionError):
    """A single log file failed to process."""


class BatchProcessError(IngestionError):
    """A batch run was rejected or aborted."""


class WatcherError(IngestionError):
    """The file watcher could not be started or stopped."""


def is_already_exists_error(error: BaseException) -> bool:
    """Treat a create failure as a lost race when it says the row already exists.

    The typed AlreadyExistsError is preferred; message text on the error or its
    cause is accepted for adapters that can only report strings.
    """
    if isinstance(error, AlreadyExistsError):
        return True
    if "already exists" in str(error):
        return True
    cause = getattr(error, "cause", None) or error.__cause__
    if cause is not None and "already exists" in str(getattr(cause, "message", cause)):
        return True
    return False
