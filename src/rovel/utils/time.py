"""Time utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def ms_to_timedelta(milliseconds: int) -> timedelta:
    """Convert a millisecond duration from configuration into a timedelta."""
    return timedelta(milliseconds=milliseconds)
