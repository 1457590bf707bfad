"""Parse transcript JSONL files into typed log entries."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from ccjsonl.ingestion.errors import LogParserError
from ccjsonl.models import (
    ClaudeLogEntry,
    ParsedLogFile,
    SummaryLog,
    claude_log_entry_adapter,
)
from ccjsonl.observability import record_parser_failure

logger = logging.getLogger("ccjsonl.parser")

_LOG_SUFFIX = ".jsonl"
_RAW_PREVIEW_CHARS = 200


class LogParser(Protocol):
    async def parse_file(self, file_path: str) -> ParsedLogFile: ...

    def parse_json_lines(self, content: str) -> list[ClaudeLogEntry]: ...

    def extract_project_name(self, file_path: str) -> str | None: ...

    def extract_session_id(self, file_path: str) -> str | None: ...


def parse_json_lines(content: str) -> list[ClaudeLogEntry]:
    """Parse newline-delimited JSON, dropping lines that are not valid entries.

    Each line is handled on its own: malformed JSON and schema mismatches are
    logged and skipped, the surviving entries keep their input order.
    """
    entries: list[ClaudeLogEntry] = []
    for line_no, line in enumerate(content.split("\n"), start=1):
        if not line.strip():
            continue
        try:
            payload = json.loads(line)
        except (json.JSONDecodeError, RecursionError) as e:
            logger.warning(
                "Skipping line %d: invalid JSON (%s). Raw data: %s",
                line_no, e, line[:_RAW_PREVIEW_CHARS],
            )
            record_parser_failure("json", project_id="")
            continue
        try:
            entries.append(claude_log_entry_adapter.validate_python(payload))
        except ValidationError as e:
            logger.warning(
                "Skipping line %d: invalid log entry (%d errors, first: %s). Raw data: %s",
                line_no, e.error_count(), _first_error(e), line[:_RAW_PREVIEW_CHARS],
            )
            record_parser_failure("schema", project_id="")
    return entries


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    first = details[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', '')}" if location else str(first.get("msg", ""))


def extract_project_name(file_path: str) -> str | None:
    """Return the directory holding the transcript (``<root>/<project>/<session>.jsonl``)."""
    parts = Path(file_path).parts
    if len(parts) < 3 or not parts[-1].endswith(_LOG_SUFFIX):
        return None
    project = parts[-2]
    return project if project and project != Path(file_path).anchor else None


def extract_session_id(file_path: str) -> str | None:
    """Return the transcript file name without its extension."""
    path = Path(file_path)
    if path.suffix != _LOG_SUFFIX or not path.stem:
        return None
    return path.stem


def _session_id_from_entries(entries: list[ClaudeLogEntry]) -> str | None:
    for entry in entries:
        if isinstance(entry, SummaryLog):
            continue
        if entry.sessionId:
            return entry.sessionId
    return None


class ClaudeLogParser:
    """LogParser for the local transcript layout."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    async def parse_file(self, file_path: str) -> ParsedLogFile:
        project_name = self.extract_project_name(file_path)
        if not project_name:
            record_parser_failure("path", project_id="")
            raise LogParserError(f"Could not extract project name from: {file_path}")

        try:
            content = await asyncio.to_thread(
                Path(file_path).read_text, encoding=self.encoding, errors="replace"
            )
        except OSError as exc:
            record_parser_failure("read", project_id=project_name)
            raise LogParserError(f"Failed to read file: {file_path}", exc) from exc

        entries = self.parse_json_lines(content)
        session_id = _session_id_from_entries(entries) or self.extract_session_id(file_path)
        if not session_id:
            record_parser_failure("session_id", project_id=project_name)
            raise LogParserError(f"Could not find session ID for: {file_path}")

        return ParsedLogFile(
            filePath=file_path,
            projectName=project_name,
            sessionId=session_id,
            entries=entries,
        )

    def parse_json_lines(self, content: str) -> list[ClaudeLogEntry]:
        return parse_json_lines(content)

    def extract_project_name(self, file_path: str) -> str | None:
        return extract_project_name(file_path)

    def extract_session_id(self, file_path: str) -> str | None:
        return extract_session_id(file_path)
