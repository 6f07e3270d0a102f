"""Timestamp helpers for documents read back from a store.

Stores may hand timestamps back as ``datetime`` objects or ISO 8601
strings. Engine code always works with timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

ONE_DAY = timedelta(days=1)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_datetime(value: object) -> datetime | None:
    """Parse a stored timestamp.

    Args:
        value: A datetime, an ISO 8601 string, or None.

    Returns:
        A timezone-aware UTC datetime, or None when value is None.

    Raises:
        TypeError: If value is neither a datetime nor a string.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise TypeError(f"Cannot interpret {value!r} as a timestamp")


def require_datetime(value: object, field_name: str) -> datetime:
    """Like ``coerce_datetime`` but the field is mandatory."""
    parsed = coerce_datetime(value)
    if parsed is None:
        raise ValueError(f"{field_name} is required")
    return parsed


def whole_days_between(start: datetime, end: datetime) -> int:
    """Number of complete days from start to end (floor, may be negative)."""
    return (ensure_utc(end) - ensure_utc(start)) // ONE_DAY
