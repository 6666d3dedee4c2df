"""Timezone-aware clock utilities.

All timestamps in leakwatch MUST be UTC-aware.  This module is the
single source of "now" so tests can monkey-patch it trivially.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso_utc(value: datetime | None) -> str | None:
    """Render *value* as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if value is None:
        return None
    text = ensure_utc(value).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")
