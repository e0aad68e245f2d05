# File: utils/dt_utils.py
"""Date and time utilities for medschedule.

Pure Python date/time functions for the local calendar the engines work in.
Uses standard library: datetime, zoneinfo, calendar, plus dateutil.

Functions:
    - set_default_timezone / get_default_timezone: Configure the local calendar
    - dt_now_local: Current wall clock
    - as_local: Timezone conversion (naive treated as local)
    - dt_combine_local: Build an aware local datetime from a date + clock time
    - parse_time_string: Parse "HH:MM" into (hour, minute)
    - clamp_day_of_month: Clamp a day-of-month into a given month
    - start_of_week: Sunday that starts the week of a date
    - weeks_between: Whole Sunday-start weeks between two dates
    - is_even_iso_week: ISO week-of-year parity
"""

from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, time, timedelta
import logging
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

# Module-level logger
_LOGGER = logging.getLogger(__name__)

# Default timezone - can be overridden by caller
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")

# Python weekday() index of Sunday (0=Mon, 6=Sun)
SUNDAY_WEEKDAY_INDEX = 6


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo | str) -> None:
    """Set the default timezone for all dt_utils functions.

    Args:
        tz: ZoneInfo object or IANA key (e.g. "Europe/Berlin")
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = ZoneInfo(tz) if isinstance(tz, str) else tz
    _LOGGER.debug("Default timezone set to %s", DEFAULT_TIME_ZONE)


def get_default_timezone() -> ZoneInfo:
    """Get the current default timezone."""
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_now_local(tz: ZoneInfo | None = None) -> datetime:
    """Return the current datetime in local timezone (timezone-aware).

    This is the default clock used by managers when none is injected.
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    return datetime.now(tz_info)


# ==============================================================================
# Timezone Conversion
# ==============================================================================


def as_local(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Convert a datetime to local timezone.

    Naive datetimes are assumed to already be local wall-clock time, since the
    engines only reason about the local calendar.

    Args:
        dt_obj: Datetime object (aware or naive)
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.

    Returns:
        Timezone-aware datetime in local timezone
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    if dt_obj.tzinfo is None:
        return dt_obj.replace(tzinfo=tz_info)
    return dt_obj.astimezone(tz_info)


def dt_combine_local(
    day: date,
    hour: int,
    minute: int,
    tz: ZoneInfo | None = None,
) -> datetime:
    """Combine a calendar date with a clock time in the local timezone.

    Example:
        dt_combine_local(date(2024, 1, 15), 8, 0)
        → datetime(2024, 1, 15, 8, 0, tzinfo=ZoneInfo("UTC"))
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    return datetime.combine(day, time(hour, minute), tzinfo=tz_info)


# ==============================================================================
# Parsing
# ==============================================================================


def parse_time_string(time_str: str) -> tuple[int, int]:
    """Parse an "HH:MM" string into an (hour, minute) tuple.

    Raises:
        ValueError: If the string is not HH:MM or values are out of range.
    """
    if not isinstance(time_str, str) or ":" not in time_str:
        raise ValueError(f"Invalid time format (expected HH:MM): {time_str!r}")

    hour_str, minute_str = time_str.strip().split(":", 1)
    hour = int(hour_str)
    minute = int(minute_str)

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Time out of range: {time_str!r}")

    return hour, minute


# ==============================================================================
# Calendar Arithmetic
# ==============================================================================


def clamp_day_of_month(year: int, month: int, day: int) -> date:
    """Return the date for `day` in the given month, clamped to its last day.

    Examples:
        clamp_day_of_month(2024, 4, 31) → date(2024, 4, 30)
        clamp_day_of_month(2025, 2, 30) → date(2025, 2, 28)
    """
    last_day = monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def add_months_clamped(day: date, months: int, day_of_month: int) -> date:
    """Move `months` forward from `day` and land on `day_of_month`, clamped.

    relativedelta's absolute `day=` argument clamps to the month length, so
    day 31 resolves to Apr 30 or Feb 28/29.
    """
    return day + relativedelta(months=months, day=day_of_month)


def start_of_week(day: date) -> date:
    """Return the Sunday that starts the week containing `day`."""
    days_since_sunday = (day.weekday() - SUNDAY_WEEKDAY_INDEX) % 7
    return day - timedelta(days=days_since_sunday)


def weeks_between(anchor: date, target: date) -> int:
    """Count whole Sunday-start weeks from the anchor's week to the target's.

    Negative when the target lies in an earlier week than the anchor.
    """
    return (start_of_week(target) - start_of_week(anchor)).days // 7


def is_even_iso_week(day: date) -> bool:
    """Return True when the ISO week-of-year of `day` is even."""
    return day.isocalendar().week % 2 == 0
