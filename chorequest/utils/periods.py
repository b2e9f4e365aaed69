"""
Period arithmetic for chore frequencies.

A period is identified by its first day: the day itself for daily chores,
the Monday of the ISO week for weekly chores. One-off chores use the day
their single assignment was created.
"""

from datetime import date, timedelta

DAILY = 'daily'
WEEKLY = 'weekly'
ONCE = 'once'

FREQUENCIES = (DAILY, WEEKLY, ONCE)


def period_start(frequency: str, day: date) -> date:
    """Return the key (first day) of the period containing day."""
    if frequency == WEEKLY:
        return day - timedelta(days=day.weekday())
    return day


def period_length(frequency: str) -> timedelta:
    if frequency == WEEKLY:
        return timedelta(days=7)
    return timedelta(days=1)


def previous_period(frequency: str, start: date) -> date:
    """Return the key of the period immediately before the one starting at start."""
    return start - period_length(frequency)


def period_end(frequency: str, start: date) -> date:
    """Return the first day after the period (exclusive bound)."""
    return start + period_length(frequency)


def is_weekly_trigger(day: date) -> bool:
    """Weekly chores are generated on the first day of the ISO week."""
    return day.weekday() == 0


def days_in_period(frequency: str, start: date) -> list:
    end = period_end(frequency, start)
    days = []
    current = start
    while current < end:
        days.append(current)
        current += timedelta(days=1)
    return days
