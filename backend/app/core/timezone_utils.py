# backend/app/core/timezone_utils.py
"""
Timezone helpers.

All comparisons happen on absolute UTC instants; shop timezones are only
used to render times for people.
"""

from datetime import datetime, timezone

import pytz


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and normalize aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_timezone(dt: datetime, tz_name: str | None) -> datetime:
    """Convert an instant to the given IANA timezone, falling back to UTC for unknown names."""
    try:
        tz = pytz.timezone(tz_name or "UTC")
    except pytz.UnknownTimeZoneError:
        tz = pytz.utc
    return ensure_utc(dt).astimezone(tz)


def format_display_time(dt: datetime, tz_name: str | None) -> str:
    """Render like ``Mar 4, 2026 at 9:05 AM EST`` in the shop's timezone."""
    local = to_timezone(dt, tz_name)
    hour = local.hour % 12 or 12
    return f"{local:%b} {local.day}, {local:%Y} at {hour}:{local:%M %p %Z}"
