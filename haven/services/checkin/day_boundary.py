"""
Day boundary policy.

A check-in belongs to the UTC calendar day it was submitted on. The same
key is used for the one-entry-per-day constraint, streaks and history, so
no caller should build date keys any other way.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

DATE_KEY_FORMAT = "%Y-%m-%d"


def utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def day_key(moment: Optional[datetime] = None) -> str:
    """
    Get the date key for a moment.

    Naive datetimes are treated as UTC.

    Args:
        moment: Point in time (defaults to now)

    Returns:
        "YYYY-MM-DD" of the UTC calendar day
    """
    moment = moment or utcnow()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(DATE_KEY_FORMAT)


def parse_day_key(key: str) -> date:
    """Parse a "YYYY-MM-DD" key back into a date."""
    return datetime.strptime(key, DATE_KEY_FORMAT).date()


def shift_day_key(key: str, days: int) -> str:
    """Move a date key by a number of days (negative for the past)."""
    return (parse_day_key(key) + timedelta(days=days)).strftime(DATE_KEY_FORMAT)
