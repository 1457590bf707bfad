"""Decide whether a log file needs (re)processing and record that it was."""
from __future__ import annotations

import asyncio
import hashlib
import logging
import os

from ccjsonl.date_utils import epoch_to_iso, parse_timestamp, utc_now_iso
from ccjsonl.ingestion.context import IngestionContext
from ccjsonl.ingestion.errors import IngestionError, TrackingError
from ccjsonl.models import FileProcessingStatus

logger = logging.getLogger("ccjsonl.tracking")

_CHUNK_SIZE = 1024 * 1024


def _file_checksum(file_path: str) -> str:
    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


async def _stat(file_path: str) -> os.stat_result:
    try:
        return await asyncio.to_thread(os.stat, file_path)
    except OSError as exc:
        raise TrackingError(f"Failed to stat {file_path}", exc) from exc


async def _checksum(file_path: str) -> str:
    try:
        return await asyncio.to_thread(_file_checksum, file_path)
    except OSError as exc:
        raise TrackingError(f"Failed to checksum {file_path}", exc) from exc


def _recorded_mtime(record: dict) -> float | None:
    """Modification time the record was taken at, as epoch seconds."""
    modified = record.get("file_modified_at")
    if modified is not None:
        return float(modified)
    processed = record.get("last_processed_at")
    if processed:
        try:
            return parse_timestamp(processed).timestamp()
        except ValueError:
            return None
    return None


async def check_file_processing_status(
    context: IngestionContext,
    file_path: str,
    include_checksum: bool = False,
) -> FileProcessingStatus:
    repo = context.log_file_tracking_repository
    if repo is None:
        return FileProcessingStatus(filePath=file_path, shouldProcess=True, reason="new_file")

    try:
        record = await repo.get_by_file_path(file_path)
    except IngestionError as exc:
        raise TrackingError(f"Failed to load tracking for {file_path}", exc) from exc

    if not record:
        return FileProcessingStatus(filePath=file_path, shouldProcess=True, reason="new_file")

    stat = await _stat(file_path)
    status = {
        "filePath": file_path,
        "lastProcessedAt": record.get("last_processed_at"),
        "fileModifiedAt": epoch_to_iso(stat.st_mtime),
    }

    recorded_mtime = _recorded_mtime(record)
    if recorded_mtime is None or stat.st_mtime > recorded_mtime:
        return FileProcessingStatus(**status, shouldProcess=True, reason="file_modified")

    recorded_size = record.get("file_size")
    if recorded_size is not None and stat.st_size != recorded_size:
        return FileProcessingStatus(**status, shouldProcess=True, reason="size_changed")

    if include_checksum and record.get("checksum"):
        if await _checksum(file_path) != record["checksum"]:
            return FileProcessingStatus(**status, shouldProcess=True, reason="checksum_changed")

    return FileProcessingStatus(**status, shouldProcess=False, reason="up_to_date")


async def update_file_processing_status(
    context: IngestionContext,
    file_path: str,
    include_checksum: bool = False,
) -> None:
    repo = context.log_file_tracking_repository
    if repo is None:
        return

    stat = await _stat(file_path)
    tracking_data = {
        "filePath": file_path,
        "lastProcessedAt": utc_now_iso(),
        "fileSize": stat.st_size,
        "fileModifiedAt": stat.st_mtime,
        "checksum": await _checksum(file_path) if include_checksum else None,
    }

    try:
        existing = await repo.get_by_file_path(file_path)
        if existing:
            await repo.update(existing["id"], tracking_data)
        else:
            await repo.create(tracking_data)
    except IngestionError as exc:
        raise TrackingError(f"Failed to record tracking for {file_path}", exc) from exc
    logger.debug(f"Recorded tracking for {file_path} (size={stat.st_size})")
