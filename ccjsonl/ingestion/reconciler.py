"""Ensure the project and session rows a log file belongs to exist."""
from __future__ import annotations

import logging
from typing import Sequence

from ccjsonl.ingestion.context import IngestionContext
from ccjsonl.ingestion.errors import IngestionError, ReconciliationError, is_already_exists_error
from ccjsonl.models import ClaudeLogEntry, SummaryLog

logger = logging.getLogger("ccjsonl.ingestion")

DEFAULT_CWD = "/tmp"


def first_cwd(entries: Sequence[ClaudeLogEntry]) -> str:
    for entry in entries:
        if isinstance(entry, SummaryLog):
            continue
        if entry.cwd:
            return entry.cwd
    return DEFAULT_CWD


async def _find_project(context: IngestionContext, project_name: str) -> dict | None:
    projects = await context.project_repository.list(offset=0, limit=1, name=project_name)
    return projects[0] if projects else None


async def ensure_project_exists(context: IngestionContext, project_name: str) -> dict:
    try:
        project = await _find_project(context, project_name)
        if project:
            return project

        try:
            await context.project_repository.create({"name": project_name, "path": project_name})
            logger.info(f"Created project {project_name}")
        except IngestionError as exc:
            if not is_already_exists_error(exc):
                raise
            # Another file of the same project won the insert.
            logger.debug(f"Project {project_name} created concurrently")

        project = await _find_project(context, project_name)
    except ReconciliationError:
        raise
    except IngestionError as exc:
        raise ReconciliationError(f"Failed to ensure project {project_name}: {exc}", exc) from exc

    if not project:
        raise ReconciliationError(f"Project {project_name} missing after create")
    return project


async def ensure_session_exists(
    context: IngestionContext,
    project: dict,
    session_id: str,
    entries: Sequence[ClaudeLogEntry],
) -> dict:
    repo = context.session_repository
    try:
        session = await repo.get_by_id(session_id)
        if session:
            return session

        try:
            await repo.create({
                "id": session_id,
                "projectId": project["id"],
                "cwd": first_cwd(entries),
            })
            logger.info(f"Created session {session_id} in project {project.get('name')}")
        except IngestionError as exc:
            if not is_already_exists_error(exc):
                raise
            logger.debug(f"Session {session_id} created concurrently")

        session = await repo.get_by_id(session_id)
    except IngestionError as exc:
        raise ReconciliationError(f"Failed to ensure session {session_id}: {exc}", exc) from exc

    if not session:
        raise ReconciliationError(f"Session {session_id} missing after create")
    return session
