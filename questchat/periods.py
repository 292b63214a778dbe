from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"


def resolve_timezone(name: str | None) -> tzinfo:
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        logger.warning("Unknown timezone %r, falling back to UTC: %s", name, exc)
        return timezone.utc


def local_now(now: datetime, tz: tzinfo) -> datetime:
    # Naive timestamps are treated as UTC.
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz)


def local_date(now: datetime, tz: tzinfo) -> date:
    return local_now(now, tz).date()


def start_of_day(now: datetime, tz: tzinfo) -> datetime:
    return datetime.combine(local_date(now, tz), time.min, tzinfo=tz)


def start_of_week(now: datetime, tz: tzinfo) -> datetime:
    day = local_date(now, tz)
    monday = day - timedelta(days=day.weekday())
    return datetime.combine(monday, time.min, tzinfo=tz)


def day_key(now: datetime, tz: tzinfo) -> str:
    return local_date(now, tz).isoformat()


def week_key(now: datetime, tz: tzinfo) -> str:
    iso_year, iso_week, _ = local_date(now, tz).isocalendar()
    return f"{iso_year:04d}-W{iso_week:02d}"
