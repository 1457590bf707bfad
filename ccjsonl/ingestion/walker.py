"""Recursive discovery of log files below a root directory."""
from __future__ import annotations

import logging
import os

from ccjsonl.ingestion.errors import FileDiscoveryError, FileSystemError
from ccjsonl.ingestion.filesystem import FileSystemManager

logger = logging.getLogger("ccjsonl.ingestion")


def pattern_suffix(pattern: str) -> str:
    """Suffix a file must carry to match ``pattern`` ("" matches everything).

    Only the last path segment matters: ``**/*.jsonl`` and ``*.jsonl`` both
    give ``.jsonl``; anything that is not ``*.<ext>`` matches all files.
    """
    last = (pattern or "").replace("\\", "/").rsplit("/", 1)[-1]
    if last.startswith("*.") and len(last) > 2 and "*" not in last[1:]:
        return last[1:]
    return ""


async def _walk(fs_manager: FileSystemManager, directory: str, suffix: str, found: list[str]) -> None:
    try:
        entries = await fs_manager.read_directory(directory)
    except FileSystemError as exc:
        logger.warning(f"Skipping unreadable directory {directory}: {exc}")
        return

    for entry in entries:
        full_path = os.path.join(directory, entry.name)
        if entry.is_dir():
            await _walk(fs_manager, full_path, suffix, found)
        elif entry.is_file() and (not suffix or entry.name.endswith(suffix)):
            found.append(full_path)


async def find_matching_files(fs_manager: FileSystemManager, root_dir: str, pattern: str) -> list[str]:
    """Return the sorted paths of every file under ``root_dir`` matching ``pattern``."""
    found: list[str] = []
    try:
        await _walk(fs_manager, root_dir, pattern_suffix(pattern), found)
    except Exception as exc:
        raise FileDiscoveryError(f"Failed to discover files in {root_dir}", exc) from exc
    return sorted(found)
