"""Timestamp helpers for the JSON documents."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render an aware UTC ISO-8601 string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse the timestamp shapes found in the stores.

    Accepts full ISO-8601 strings (with ``Z`` or an offset), date-only strings
    and naive datetimes, which are taken as UTC. Returns ``None`` for empty or
    unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def add_days(start: datetime, days: int) -> datetime:
    return start + timedelta(days=days)


def date_only(value: Any) -> str:
    """Return ``YYYY-MM-DD`` for a timestamp, falling back to the raw prefix."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return str(value).split("T")[0]
    return parsed.astimezone(timezone.utc).date().isoformat()


__all__ = ["add_days", "date_only", "format_timestamp", "parse_timestamp", "utc_now"]
