"""
Business-day calendar.

Pure functions without I/O. Only weekends are skipped; public holidays
are not modelled.
"""

from datetime import datetime, timedelta

from clearance.constants import CLEARANCE_DAYS, WEEKEND_DAYS


def add_business_days(date: datetime, days: int) -> datetime:
    """
    Advance a timestamp by a number of business days.

    Counting starts from the literal timestamp: each step moves one
    calendar day forward and only counts when it lands on a weekday.
    The time of day and tzinfo are preserved.

    Args:
        date: Starting timestamp
        days: Number of business days to add (negative treated as zero)

    Returns:
        Shifted timestamp

    Example:
        >>> from datetime import datetime
        >>> add_business_days(datetime(2026, 1, 3), 1)  # Saturday
        datetime.datetime(2026, 1, 5, 0, 0)
    """
    result = date
    added = 0
    while added < days:
        result += timedelta(days=1)
        if result.weekday() not in WEEKEND_DAYS:
            added += 1
    return result


def clearance_date(
    created_at: datetime, days: int = CLEARANCE_DAYS
) -> datetime:
    """Moment a commission recorded at ``created_at`` clears."""
    return add_business_days(created_at, days)


def is_cleared(
    created_at: datetime, now: datetime, days: int = CLEARANCE_DAYS
) -> bool:
    """
    Check whether a commission has cleared.

    Args:
        created_at: When the commission was recorded
        now: Reference time
        days: Clearance window in business days

    Returns:
        True iff ``now`` is at or after the clearance date
    """
    return now >= clearance_date(created_at, days)
