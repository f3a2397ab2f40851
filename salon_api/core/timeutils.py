"""
Time helpers.

Timestamps are stored in UTC.  "Local" days and months (today's
attendance, salary month, scheduler windows) use ``settings.TIMEZONE``.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from salon_api.core.config import settings
from salon_api.core.exceptions import ValidationFailed


@lru_cache(maxsize=8)
def get_zone(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or settings.TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Normalise a potentially-naive timestamp to UTC-aware.

    SQLite hands back naive values; they were written as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_date(now: datetime | None = None, tz: ZoneInfo | None = None) -> date:
    """Calendar date of *now* in the configured timezone."""
    now = ensure_utc(now) or utcnow()
    return now.astimezone(tz or get_zone()).date()


def local_midnight(day: date, tz: ZoneInfo | None = None) -> datetime:
    """UTC instant of local midnight at the start of *day*."""
    try:
        return datetime.combine(day, time.min, tzinfo=tz or get_zone()).astimezone(timezone.utc)
    except OverflowError:
        raise ValidationFailed(f"Date {day.isoformat()} is out of range") from None


def next_day(day: date) -> date:
    try:
        return day + timedelta(days=1)
    except OverflowError:
        raise ValidationFailed(f"Date {day.isoformat()} is out of range") from None


def day_bounds(day: date, tz: ZoneInfo | None = None) -> tuple[datetime, datetime]:
    """Half-open UTC window ``[start, end)`` covering local *day*."""
    return local_midnight(day, tz), local_midnight(next_day(day), tz)


def month_key(now: datetime | None = None, tz: ZoneInfo | None = None) -> str:
    """``YYYY-MM`` for *now* in the configured timezone."""
    return local_date(now, tz).strftime("%Y-%m")


def month_bounds(month: str, tz: ZoneInfo | None = None) -> tuple[datetime, datetime]:
    """Half-open UTC window covering a ``YYYY-MM`` month."""
    year, mon = (int(p) for p in month.split("-"))
    try:
        first = date(year, mon, 1)
        nxt = date(year + 1, 1, 1) if mon == 12 else date(year, mon + 1, 1)
    except ValueError:
        raise ValidationFailed(f"Month {month} is out of range") from None
    return local_midnight(first, tz), local_midnight(nxt, tz)


def parse_clock(value: str) -> tuple[int, int]:
    hour, minute = value.split(":")
    return int(hour), int(minute)
