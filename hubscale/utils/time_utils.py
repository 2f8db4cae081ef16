"""Time utilities for HubScale."""

from datetime import datetime, timedelta
from typing import Optional

import pytz


def get_current_datetime(timezone: str = "UTC") -> datetime:
    """
    Get current datetime in specified timezone.

    Args:
        timezone: IANA timezone name (e.g., 'UTC', 'Europe/Berlin')

    Returns:
        Current datetime in specified timezone

    Raises:
        ValueError: If timezone is invalid
    """
    try:
        tz = pytz.timezone(timezone)
        return datetime.now(tz)
    except pytz.exceptions.UnknownTimeZoneError as e:
        raise ValueError(f"Invalid timezone: {timezone}") from e


def compute_next_wake_time(
    turn_started: datetime,
    interval_seconds: int,
    now: datetime,
) -> datetime:
    """
    Compute when the next turn should start.

    The interval is measured from the start of the finished turn, so the time
    a cycle takes does not accumulate as drift. A turn that overran the
    interval is followed immediately.

    Args:
        turn_started: When the finished turn started
        interval_seconds: Fixed interval between turns
        now: Current time

    Returns:
        Wake time for the continuation
    """
    wake_time = turn_started + timedelta(seconds=interval_seconds)
    return max(wake_time, now)


def seconds_until(target: Optional[datetime], now: datetime) -> Optional[float]:
    """Seconds from now until target, never negative. None if target is None."""
    if target is None:
        return None
    return max(0.0, (target - now).total_seconds())


def format_datetime(dt: datetime, timezone: Optional[str] = None) -> str:
    """
    Format datetime for logging.

    Args:
        dt: Datetime to format
        timezone: Optional IANA timezone to convert to first

    Returns:
        Formatted datetime string
    """
    if timezone is not None:
        dt = dt.astimezone(pytz.timezone(timezone))
    return dt.strftime("%Y-%m-%d %H:%M:%S %Z")
