"""Human-readable session names from summaries or the opening user message."""
from __future__ import annotations

import re

from ccjsonl.ingestion.context import IngestionContext

DEFAULT_SESSION_NAME = "Generated Session"
MAX_NAME_LENGTH = 50
NAME_CANDIDATE_MESSAGES = 5

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_LABEL_PREFIX = re.compile(r"^(Summary|Session|Chat|Conversation|Discussion):\s*", re.IGNORECASE)
_ARTICLE_PREFIX = re.compile(r"^(The|This|A|An)\s+", re.IGNORECASE)


def _truncate(text: str, limit: int = MAX_NAME_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def name_from_summary(summary: str) -> str:
    text = _SENTENCE_SPLIT.split((summary or "").strip(), maxsplit=1)[0].strip()
    text = _LABEL_PREFIX.sub("", text)
    text = _ARTICLE_PREFIX.sub("", text).strip()
    if not text:
        return DEFAULT_SESSION_NAME
    return _truncate(text)


def name_from_user_message(content: str) -> str | None:
    text = (content or "").strip()
    # Tagged content ("<command-name>", "<system-reminder>") is tooling noise.
    if not text or text.startswith("<"):
        return None
    return _truncate(text.splitlines()[0].strip())


async def name_session_from_first_user_message(context: IngestionContext, session_id: str) -> str | None:
    """Name an unnamed session after its first meaningful user message.

    Returns the name that was written, or None when the session already has
    a name or none of its opening messages qualify.
    """
    session = await context.session_repository.get_by_id(session_id)
    if not session or session.get("name"):
        return None

    messages = await context.message_repository.list(
        offset=0,
        limit=NAME_CANDIDATE_MESSAGES,
        session_id=session_id,
        order_by="timestamp",
    )
    for message in messages:
        if message.get("role") != "user":
            continue
        name = name_from_user_message(message.get("content") or "")
        if name:
            await context.session_repository.update_name(session_id, name)
            return name
    return None
