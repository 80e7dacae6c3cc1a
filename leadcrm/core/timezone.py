"""Business-calendar helpers.

The sales floor runs on a fixed UTC+8 offset.  Dates and wall-clock
times typed by agents (follow-ups, timeslots, check-in days) are in that
offset; everything persisted as a timestamp is UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from leadcrm.core.config import settings


def business_tz() -> timezone:
    return timezone(timedelta(hours=settings.BUSINESS_UTC_OFFSET_HOURS))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def business_today(now: Optional[datetime] = None) -> date:
    """Return the current calendar date on the business clock."""
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(business_tz()).date()


def parse_hhmm(value: str) -> time:
    """Parse ``HH:MM`` (or ``HH:MM:SS``) into a :class:`time`."""
    return time.fromisoformat(value)


def business_to_utc(day: date, at: Optional[time] = None) -> datetime:
    """Interpret *day* / *at* on the business clock and return UTC.

    When *at* is omitted the configured default time of day is used, so
    ``business_to_utc(date(2025, 3, 10))`` with the default ``00:00``
    yields ``2025-03-09T16:00:00+00:00``.
    """
    if at is None:
        at = parse_hhmm(settings.FOLLOW_UP_DEFAULT_TIME)
    local = datetime.combine(day, at.replace(tzinfo=None), tzinfo=business_tz())
    return local.astimezone(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from backends without tz."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
