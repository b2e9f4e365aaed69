"""
Holiday-mode exemption checks.

Family and child holiday settings are consulted through is_exempt() so every
place that considers a penalty or a streak break applies the same rule.
"""

from datetime import date
from typing import Iterable


def _holiday_covers(enabled: bool, start: date, end: date, day: date) -> bool:
    if not enabled:
        return False

    # Check if holiday has started
    if start and day < start:
        return False

    # Check if holiday has ended
    if end and day > end:
        return False

    return True


def family_on_holiday(family, day: date) -> bool:
    return _holiday_covers(family.holiday_mode, family.holiday_start_date,
                           family.holiday_end_date, day)


def child_on_holiday(child, day: date) -> bool:
    return _holiday_covers(child.holiday_mode, child.holiday_start_date,
                           child.holiday_end_date, day)


def is_exempt(family, child, day: date) -> bool:
    """
    Check whether misses on a day are excused for a child.

    Args:
        family: Family whose holiday window applies to every child
        child: Child with an optional holiday window of their own
        day: Local calendar date

    Returns:
        bool: True if either the family or the child was in holiday mode
    """
    return family_on_holiday(family, day) or child_on_holiday(child, day)


def is_exempt_during(family, child, days: Iterable[date]) -> bool:
    """True if holiday mode covered the child at any point during the days."""
    return any(is_exempt(family, child, day) for day in days)
