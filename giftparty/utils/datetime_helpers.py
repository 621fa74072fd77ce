"""Datetime utility functions for timezone handling."""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a UTC-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware in UTC.

    SQLite hands back naive datetimes for DateTime(timezone=True) columns;
    those are stored as UTC and are tagged accordingly here.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
