"""UTC day/week boundaries and minute arithmetic."""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone

DAY = timedelta(days=1)
MILLISECOND = timedelta(milliseconds=1)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def start_of_day(day: str | date | datetime) -> datetime:
    return datetime.combine(parse_date(day), time.min, tzinfo=timezone.utc)


def end_of_day(day: str | date | datetime) -> datetime:
    return start_of_day(day) + DAY - MILLISECOND


def start_of_week(day: str | date | datetime) -> datetime:
    """Monday 00:00 UTC of the week containing ``day``."""

    base = start_of_day(day)
    return base - timedelta(days=base.weekday())


def date_key(value: date | datetime) -> str:
    if isinstance(value, datetime):
        return ensure_utc(value).date().isoformat()
    return value.isoformat()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def minutes_between(start: datetime, end: datetime) -> int:
    seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    return max(0, round_half_up(seconds / 60.0))


def within(value: datetime | None, start: datetime, end: datetime) -> bool:
    """Inclusive range check; ``None`` is never inside."""

    if value is None:
        return False
    return start <= ensure_utc(value) <= end


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
