"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """
    Return a timezone-aware UTC datetime.

    Naive values (some drivers drop tzinfo on read) are taken as UTC.

    Args:
        value: Datetime to normalise

    Returns:
        Datetime in UTC with timezone awareness
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
