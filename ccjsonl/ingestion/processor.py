"""Ingest one transcript file: parse, reconcile, persist messages, name the session."""
from __future__ import annotations

import json
import logging
import time
from typing import Union

from ccjsonl.date_utils import normalize_iso_date
from ccjsonl.ingestion.context import IngestionContext
from ccjsonl.ingestion.errors import IngestionError, ProcessLogFileError
from ccjsonl.ingestion.reconciler import ensure_project_exists, ensure_session_exists
from ccjsonl.ingestion.session_naming import (
    name_from_summary,
    name_session_from_first_user_message,
)
from ccjsonl.ingestion.tracking import update_file_processing_status
from ccjsonl.models import (
    AssistantLog,
    ClaudeLogEntry,
    ProcessLogFileResult,
    SummaryLog,
    SystemLog,
    UserLog,
)
from ccjsonl.observability import record_ingestion, start_span

logger = logging.getLogger("ccjsonl.ingestion")


def _message_content(content: Union[str, list, dict, None]) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False)


def _timestamp(value: str) -> str:
    return normalize_iso_date(value) or value


async def _touch_session(context: IngestionContext, session_id: str, entry: Union[UserLog, AssistantLog, SystemLog]) -> None:
    """Move the session's cwd and last-message marker to this entry; failures only warn."""
    try:
        await context.session_repository.update_cwd(session_id, entry.cwd)
    except IngestionError as exc:
        logger.warning(f"Failed to update cwd for session {session_id}: {exc}")
    try:
        await context.session_repository.update_last_message_at(session_id, _timestamp(entry.timestamp))
    except IngestionError as exc:
        logger.warning(f"Failed to update last_message_at for session {session_id}: {exc}")


async def _process_message_entry(context: IngestionContext, session_id: str, entry: Union[UserLog, AssistantLog]) -> None:
    role = entry.message.role
    if not role:
        logger.warning(f"Skipping {entry.type} entry {entry.uuid}: message has no role")
        return

    await context.message_repository.upsert({
        "sessionId": session_id,
        "role": role,
        "content": _message_content(entry.message.content),
        "timestamp": _timestamp(entry.timestamp),
        "rawData": entry.model_dump_json(),
        "uuid": entry.uuid,
        "parentUuid": entry.parentUuid,
        "cwd": entry.cwd,
    })
    await _touch_session(context, session_id, entry)


async def _process_system_entry(context: IngestionContext, session_id: str, entry: SystemLog) -> None:
    await context.message_repository.upsert({
        "sessionId": session_id,
        "role": "assistant",
        "content": f"[SYSTEM] {entry.content}",
        "timestamp": _timestamp(entry.timestamp),
        "rawData": entry.model_dump_json(),
        "uuid": entry.uuid,
        "parentUuid": entry.parentUuid,
        "cwd": entry.cwd,
    })
    await _touch_session(context, session_id, entry)


async def _process_summary_entry(context: IngestionContext, session_id: str, entry: SummaryLog) -> None:
    if not entry.summary.strip():
        logger.debug(f"Empty summary for session {session_id}, keeping current name")
        return
    name = name_from_summary(entry.summary)
    await context.session_repository.update_name(session_id, name)
    logger.info(f"Named session {session_id} from summary: {name!r}")


async def _process_entries(context: IngestionContext, session_id: str, entries: list[ClaudeLogEntry]) -> None:
    for entry in entries:
        try:
            if isinstance(entry, (UserLog, AssistantLog)):
                await _process_message_entry(context, session_id, entry)
            elif isinstance(entry, SystemLog):
                await _process_system_entry(context, session_id, entry)
            elif isinstance(entry, SummaryLog):
                await _process_summary_entry(context, session_id, entry)
        except Exception as exc:  # noqa: BLE001
            # One bad entry must not cost the rest of the file.
            logger.warning(
                f"Failed to process {entry.type} entry "
                f"{getattr(entry, 'uuid', None) or getattr(entry, 'leafUuid', '')} "
                f"in session {session_id}: {exc}"
            )


async def process_log_file(
    context: IngestionContext,
    file_path: str,
    *,
    track: bool = True,
) -> ProcessLogFileResult:
    """Ingest a single transcript file.

    Entries are applied in file order. Per-entry failures are logged and
    skipped; parse and reconciliation failures fail the whole file with
    ProcessLogFileError. With ``track`` the file's tracking record is
    refreshed after a successful run.
    """
    started = time.monotonic()
    project_name = ""
    try:
        with start_span("ingestion.process_log_file", {"file.path": file_path}):
            try:
                parsed = await context.log_parser.parse_file(file_path)
            except IngestionError as exc:
                raise ProcessLogFileError(f"Failed to parse log file {file_path}: {exc}", exc) from exc

            project_name = parsed.projectName
            entries = parsed.entries
            if entries:
                project = await ensure_project_exists(context, parsed.projectName)
                session = await ensure_session_exists(context, project, parsed.sessionId, entries)
                await _process_entries(context, parsed.sessionId, entries)

                has_summary = any(isinstance(entry, SummaryLog) for entry in entries)
                if not has_summary and session.get("name") is None:
                    try:
                        await name_session_from_first_user_message(context, parsed.sessionId)
                    except IngestionError as exc:
                        logger.warning(f"Failed to name session {parsed.sessionId}: {exc}")
            else:
                logger.info(f"No valid log entries found in {file_path}")

            if track:
                try:
                    await update_file_processing_status(context, file_path)
                except IngestionError as exc:
                    logger.warning(f"Failed to update tracking for {file_path}: {exc}")
    except ProcessLogFileError:
        record_ingestion("log_file", "failed", (time.monotonic() - started) * 1000, project_id=project_name)
        raise
    except Exception as exc:
        record_ingestion("log_file", "failed", (time.monotonic() - started) * 1000, project_id=project_name)
        raise ProcessLogFileError(f"Error processing log file {file_path}: {exc}", exc) from exc

    record_ingestion("log_file", "success", (time.monotonic() - started) * 1000, project_id=project_name)
    logger.info(f"Processed {len(entries)} entries from {file_path}")
    return ProcessLogFileResult(filePath=file_path, entriesProcessed=len(entries))
