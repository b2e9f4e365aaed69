"""
Timezone utilities for ChoreQuest.

Periods (days and ISO weeks) are calendar units in the family's local
timezone, while timestamps are stored as naive UTC. These helpers convert
between the two using the configured TZ environment variable.
"""

import os
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo


def get_timezone() -> ZoneInfo:
    """Get the configured timezone from environment.

    Returns:
        ZoneInfo for the configured timezone, defaults to Europe/London
    """
    tz_name = os.environ.get('TZ', 'Europe/London')
    try:
        return ZoneInfo(tz_name)
    except Exception:
        # Fallback to London if invalid timezone configured
        return ZoneInfo('Europe/London')


def local_now() -> datetime:
    """Get the current datetime in the configured timezone."""
    return datetime.now(get_timezone())


def local_today() -> date:
    """Get today's date in the configured timezone."""
    return local_now().date()


def utc_now() -> datetime:
    """Get the current datetime in UTC as a naive value, the way it is stored."""
    return datetime.now(ZoneInfo('UTC')).replace(tzinfo=None)


def to_local_date(moment: Optional[datetime]) -> Optional[date]:
    """Convert a stored (naive UTC) timestamp to the local calendar date.

    Args:
        moment: Naive UTC datetime, or an aware datetime in any zone

    Returns:
        The date on the local calendar, or None if moment is None
    """
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=ZoneInfo('UTC'))
    return moment.astimezone(get_timezone()).date()
