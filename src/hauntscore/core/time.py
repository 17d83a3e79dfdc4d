"""
Timestamp helpers.

Ratings depend on the hour and month of an instant, so every timestamp that
reaches the engine is timezone-aware. Naive values coming from the API or CLI
get the configured zone (`ensure_tz`); naive values inside the library are
read as UTC (`as_utc`).
"""

from __future__ import annotations

from datetime import datetime, timezone as dt_timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(dt_timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Convert to UTC; a naive value is taken to already be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_timezone.utc)
    return dt.astimezone(dt_timezone.utc)


def ensure_tz(dt: datetime, timezone: str) -> datetime:
    """Attach `timezone` to a naive datetime; aware values pass through."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo(timezone))
    return dt


def parse_datetime(value: str, timezone: str) -> datetime:
    """Parse an ISO-8601 string (trailing `Z` allowed) into an aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_tz(datetime.fromisoformat(value), timezone)


def format_utc_offset(offset_seconds: int) -> str:
    """Render an offset as `UTC+H` / `UTC-H` (`UTC+5.5` for fractional hours)."""
    hours = offset_seconds / 3600
    return f"UTC{'+' if hours >= 0 else ''}{hours:g}"
