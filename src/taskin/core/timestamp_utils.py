"""Timestamp utilities for Taskin.

All server timestamps are naive UTC datetimes. They are stored and sent over
the wire in one canonical text form so that string comparison in SQLite
matches chronological order.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Get the current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime in the canonical storage/wire form.

    Args:
        dt: datetime (naive UTC or timezone-aware) or None

    Returns:
        "YYYY-MM-DDTHH:MM:SS.ffffff", or None if dt is None
    """
    if dt is None:
        return None
    # isoformat pads the year to four digits; strftime("%Y") does not everywhere
    return to_naive_utc(dt).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into a naive UTC datetime.

    Accepts a trailing "Z" or an explicit offset; values without zone
    information are taken to be UTC already.

    Raises:
        ValueError: If value is not a valid ISO-8601 timestamp
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_naive_utc(datetime.fromisoformat(text))


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def far_past(now: datetime, years: int = 10) -> datetime:
    """Sentinel "since" value meaning effectively everything."""
    return now - timedelta(days=365 * years)
