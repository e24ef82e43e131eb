"""Period resolver — map a symbolic ``Period`` to a concrete start instant.

Pure functions of (period, now, calendar); no I/O.  The ``PAST_*`` periods
subtract a fixed number of 86 400-second days rather than walking the
calendar.  ``CURRENT_YEAR``, ``ALL_TIME`` and ``YESTERDAY`` intentionally keep
the behaviour existing callers depend on:

    CURRENT_YEAR → start of the last day of the previous month
    ALL_TIME     → start of the 1st of the current month
    YESTERDAY    → start of *today*

Any calendar construction failure falls back to ``now``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from stepwise.health.base import Period, TimeWindow

logger = logging.getLogger("stepwise.health.periods")

ONE_DAY_SECONDS = 86400.0

# Earliest instant used for "over all time" sample queries.
DISTANT_PAST = datetime.min.replace(tzinfo=timezone.utc)

_FIXED_DAYS: dict[Period, int] = {
    Period.PAST_DAY: 1,
    Period.PAST_WEEK: 7,
    Period.PAST_MONTH: 30,
    Period.PAST_YEAR: 365,
}


@dataclass(frozen=True)
class Calendar:
    """Calendar rules used for day, week and month boundaries.

    Attributes:
        tz:            Zone in which calendar days are counted.  None means the
                       host's local zone, looked up per instant so DST changes
                       move the offset.
        first_weekday: Python weekday index (Monday=0 … Sunday=6) that starts a week.
    """

    tz: tzinfo | None = timezone.utc
    first_weekday: int = 6

    def now(self) -> datetime:
        return self.local(datetime.now(timezone.utc))

    def local(self, instant: datetime) -> datetime:
        if self.tz is None:
            return instant.astimezone()
        return instant.astimezone(self.tz)

    def at(self, day: date, hour: int = 0) -> datetime:
        """Wall-clock ``hour``:00 on ``day``, with the offset in force at that time."""
        wall = datetime.combine(day, time(hour))
        if self.tz is None:
            return wall.astimezone()
        return wall.replace(tzinfo=self.tz)

    def midnight(self, day: date) -> datetime:
        return self.at(day)

    def start_of_day(self, instant: datetime) -> datetime:
        return self.midnight(self.local(instant).date())

    def hour(self, instant: datetime) -> int:
        return self.local(instant).hour


def _resolve(period: Period, now: datetime, calendar: Calendar) -> datetime:
    if period in _FIXED_DAYS:
        return now - timedelta(seconds=ONE_DAY_SECONDS * _FIXED_DAYS[period])

    local = calendar.local(now)
    today = local.date()

    if period is Period.TODAY:
        return calendar.midnight(today)
    if period is Period.CURRENT_WEEK:
        back = (local.weekday() - calendar.first_weekday) % 7
        return calendar.midnight(today - timedelta(days=back))
    if period in (Period.CURRENT_MONTH, Period.ALL_TIME):
        return calendar.midnight(today.replace(day=1))
    if period is Period.CURRENT_YEAR:
        # day-of-month 0 normalises to the last day of the previous month
        return calendar.midnight(today.replace(day=1) - timedelta(days=1))
    if period is Period.YESTERDAY:
        return calendar.midnight(today)

    raise ValueError(f"Unhandled period {period!r}")


def resolve(period: Period, now: datetime, calendar: Calendar | None = None) -> datetime:
    """Return the start instant for ``period`` as seen at ``now``.

    Args:
        period:   Symbolic period.
        now:      Current instant (timezone-aware).
        calendar: Day/week rules; UTC with Sunday-first weeks by default.

    Returns:
        The resolved instant, or ``now`` if it cannot be constructed.
    """
    cal = calendar or Calendar()
    try:
        return _resolve(period, now, cal)
    except (ValueError, OverflowError, OSError) as exc:
        logger.warning("Could not resolve %s at %s (%s); using now", period.name, now, exc)
        return now


def end_of_today(now: datetime, calendar: Calendar | None = None) -> datetime:
    """Start of tomorrow (today at hour 24), or ``now`` on failure."""
    cal = calendar or Calendar()
    try:
        return cal.midnight(cal.local(now).date() + timedelta(days=1))
    except (ValueError, OverflowError, OSError) as exc:
        logger.warning("Could not compute end of day for %s (%s); using now", now, exc)
        return now


def hour_window(hour: int, now: datetime, calendar: Calendar | None = None) -> TimeWindow:
    """The window [hh:00:00, hh:59:59] on today's date.

    Raises:
        ValueError: If ``hour`` is outside 0..23.
    """
    cal = calendar or Calendar()
    start = cal.at(cal.local(now).date(), hour)
    return TimeWindow(start=start, end=start.replace(minute=59, second=59))
