"""Pydantic models for transcript log entries and ingestion reports."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

# ── Transcript log entries ──────────────────────────────────────────


class _LogModel(BaseModel):
    # Transcripts carry many fields we do not model; keep them for raw_data.
    model_config = ConfigDict(extra="allow")


class LogEntryBase(_LogModel):
    uuid: str
    parentUuid: Optional[str]
    timestamp: str
    isSidechain: bool
    userType: Literal["external"]
    cwd: str
    sessionId: str
    version: str


class SummaryLog(_LogModel):
    type: Literal["summary"]
    summary: str
    leafUuid: str


class UserMessage(_LogModel):
    role: Optional[Literal["user"]] = None
    content: Union[str, list[Any]]


class UserLog(LogEntryBase):
    type: Literal["user"]
    message: UserMessage
    isMeta: Optional[bool] = None
    toolUseResult: Any = None


class AssistantMessage(_LogModel):
    id: str
    type: Literal["message"]
    role: Optional[Literal["assistant"]] = None
    model: Optional[str] = None
    content: list[Any]
    stop_reason: Optional[str] = None
    stop_sequence: Optional[str] = None
    usage: Any = None


class AssistantLog(LogEntryBase):
    type: Literal["assistant"]
    message: AssistantMessage
    requestId: Optional[str] = None
    isApiErrorMessage: Optional[bool] = None


class SystemLog(LogEntryBase):
    type: Literal["system"]
    content: str
    level: Optional[Literal["info", "warning", "error", "debug"]] = None
    isMeta: Optional[bool] = None


ClaudeLogEntry = Annotated[
    Union[SummaryLog, UserLog, AssistantLog, SystemLog],
    Field(discriminator="type"),
]

claude_log_entry_adapter: TypeAdapter[ClaudeLogEntry] = TypeAdapter(ClaudeLogEntry)


class ParsedLogFile(BaseModel):
    filePath: str
    projectName: str
    sessionId: str
    entries: list[ClaudeLogEntry] = Field(default_factory=list)


# ── File tracking ───────────────────────────────────────────────────

ProcessingReason = Literal[
    "new_file",
    "file_modified",
    "size_changed",
    "checksum_changed",
    "up_to_date",
]


class FileProcessingStatus(BaseModel):
    filePath: str
    shouldProcess: bool
    reason: ProcessingReason
    lastProcessedAt: Optional[str] = None
    fileModifiedAt: Optional[str] = None


# ── Processing reports ──────────────────────────────────────────────


class ProcessLogFileResult(BaseModel):
    filePath: str
    entriesProcessed: int = 0


class BatchProcessInput(BaseModel):
    targetDirectory: str = Field(..., min_length=1)
    pattern: str = "**/*.jsonl"
    maxConcurrency: int = Field(5, ge=1)
    skipExisting: bool = False


class BatchProcessFileResult(BaseModel):
    filePath: str
    status: Literal["success", "skipped", "failed"]
    entriesProcessed: int = 0
    error: Optional[str] = None


class BatchFileError(BaseModel):
    filePath: str
    error: str


class BatchProcessResult(BaseModel):
    totalFiles: int = 0
    processedFiles: int = 0
    skippedFiles: int = 0
    failedFiles: int = 0
    totalEntries: int = 0
    fileResults: list[BatchProcessFileResult] = Field(default_factory=list)
    errors: list[BatchFileError] = Field(default_factory=list)


# ── Watcher ─────────────────────────────────────────────────────────


class FileChangeEvent(BaseModel):
    type: Literal["add", "change", "unlink"]
    filePath: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class WatcherConfig(BaseModel):
    targetDirectory: str = Field(..., min_length=1)
    pattern: str = "**/*.jsonl"
    ignoreInitial: bool = False
    persistent: bool = True
    stabilityThreshold: int = 1000  # ms
    pollInterval: int = 100  # ms
