"""Shared timestamp normalization helpers."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def _format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(token: str) -> datetime:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed) into an aware UTC datetime.

    Raises ValueError for anything that is not a parseable timestamp.
    """
    cleaned = (token or "").strip()
    if not cleaned:
        raise ValueError("empty timestamp")
    parsed = datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_iso_date(value: Any) -> str:
    """Convert mixed timestamp inputs into comparable ISO strings."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return _format_datetime_utc(value)
    if isinstance(value, (int, float)):
        return epoch_to_iso(float(value))
    if isinstance(value, str):
        try:
            return _format_datetime_utc(parse_timestamp(value))
        except ValueError:
            return ""
    return ""


def epoch_to_iso(value: float) -> str:
    return _format_datetime_utc(datetime.fromtimestamp(float(value), timezone.utc))


def utc_now_iso() -> str:
    return _format_datetime_utc(datetime.now(timezone.utc))
