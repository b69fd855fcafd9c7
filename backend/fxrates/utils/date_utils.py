# backend/fxrates/utils/date_utils.py
"""
Date utility functions for the exchange rate services.

Calendar arithmetic for trend windows lives here: subtracting "3 months"
means the same day three calendar months earlier, clamped to the end of
shorter months, never a fixed number of days.

Usage:
    from fxrates.utils.date_utils import subtract_months

    start = subtract_months(now, 3)
"""

import calendar
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def subtract_months(moment: datetime, months: int) -> datetime:
    """
    Move a datetime back by a number of calendar months.

    The day of month is clamped to the last day of the target month;
    time of day and tzinfo are preserved.

    Args:
        moment: Starting point
        months: Number of months to go back (non-negative)

    Returns:
        The shifted datetime

    Example:
        >>> subtract_months(datetime(2024, 3, 31), 1)
        datetime.datetime(2024, 2, 29, 0, 0)
    """
    if months < 0:
        raise ValueError("months must be non-negative")

    total = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(total, 12)
    month += 1

    if year < 1:
        raise ValueError(f"Cannot go back {months} months from {moment.isoformat()}")

    last_day = calendar.monthrange(year, month)[1]
    return moment.replace(year=year, month=month, day=min(moment.day, last_day))


def subtract_years(moment: datetime, years: int) -> datetime:
    """Move a datetime back by calendar years (Feb 29 -> Feb 28)."""
    return subtract_months(moment, years * 12)
