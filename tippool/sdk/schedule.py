"""Auto-close scheduling for tip periods.

Given when a period started and the team's period settings, compute the
instant the period closes on its own.

Closing-time semantics
----------------------

A closing time in the morning (00:00-11:59) is read as "after midnight of
the nominal close day": a bar that closes at 02:00 on a Sunday night
closes on Monday at 02:00. An afternoon/evening closing time (12:00-23:59)
stays on the nominal close day.

    duration  aligned  nominal close day           morning closing time
    --------  -------  --------------------------  ---------------------
    day       either   start day                   next day
    week      yes      Sunday ending the ISO week  Monday after it
    week      no       start + 7 days              (already past window)
    month     yes      last day of start month     1st of next month
    month     no       1st of next month           (already past window)

Rolling week/month close days already lie past the end of the window, so
the morning shift does not move them again: a rolling week started on a
Monday closes the next Monday at the closing time, whatever that time is.

Daily periods get one extra guard: if the computed instant is already in
the past (e.g. a period started at 21:00 with a 20:00 closing time), it
moves forward one day so a fresh period never closes immediately.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from .schemas import ClosingTime, PeriodDuration

# Afternoon starts at noon: 12:00 stays on the nominal close day.
NOON_HOUR = 12


def _last_day_of_month(day: date) -> date:
    return _first_day_of_next_month(day) - timedelta(days=1)


def _first_day_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def _nominal_close_day(start_day: date, duration: PeriodDuration, align_with_calendar: bool) -> date:
    if duration is PeriodDuration.DAY:
        return start_day

    if duration is PeriodDuration.WEEK:
        if align_with_calendar:
            # Weeks start on Monday (weekday 0) and end on Sunday (weekday 6)
            return start_day + timedelta(days=6 - start_day.weekday())
        return start_day + timedelta(days=7)

    if align_with_calendar:
        return _last_day_of_month(start_day)
    return _first_day_of_next_month(start_day)


def is_morning(closing_time: ClosingTime) -> bool:
    """True when the closing time falls between 00:00 and 11:59."""
    return closing_time.hour < NOON_HOUR


def compute_auto_close_date(
    start_date: datetime,
    duration: PeriodDuration,
    align_with_calendar: bool,
    closing_time: ClosingTime,
    now: Optional[datetime] = None,
) -> datetime:
    """Compute the instant a period started at start_date closes.

    Args:
        start_date: When the period started. The result uses the same
            timezone (or lack of one).
        duration: Period length (day, week, month).
        align_with_calendar: Close on calendar boundaries (Sunday, end of
            month) instead of a rolling window.
        closing_time: Wall-clock closing time.
        now: Reference time for the daily "not in the past" guard.
            Defaults to the current time.

    Returns:
        The auto-close instant.
    """
    duration = PeriodDuration(duration)
    close_day = _nominal_close_day(start_date.date(), duration, align_with_calendar)

    if is_morning(closing_time):
        if duration is PeriodDuration.DAY or align_with_calendar:
            close_day += timedelta(days=1)

    close_at = datetime.combine(
        close_day,
        time(closing_time.hour, closing_time.minute),
        tzinfo=start_date.tzinfo,
    )

    if duration is PeriodDuration.DAY:
        if now is None:
            now = datetime.now(tz=start_date.tzinfo)
        if close_at < now:
            close_at += timedelta(days=1)

    return close_at


def generate_period_name(start_date: datetime, duration: PeriodDuration) -> str:
    """Human readable period name for the configured granularity.

    day   -> "Monday 8 April 2024"
    week  -> "Week 15 2024" (ISO week number and ISO year)
    month -> "April 2024"
    """
    duration = PeriodDuration(duration)
    if duration is PeriodDuration.DAY:
        return f"{start_date:%A} {start_date.day} {start_date:%B %Y}"
    if duration is PeriodDuration.WEEK:
        iso_year, iso_week, _ = start_date.isocalendar()
        return f"Week {iso_week} {iso_year}"
    return f"{start_date:%B %Y}"


def format_closing_time(closing_time: ClosingTime) -> str:
    """Format a closing time as HH:MM."""
    return f"{closing_time.hour:02d}:{closing_time.minute:02d}"
