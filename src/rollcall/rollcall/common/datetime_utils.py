from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Union
from zoneinfo import ZoneInfo

from ..core.constants import DEFAULT_TIMEZONE
from ..core.exceptions import ValidationError

DayLike = Union[str, date, datetime]


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date {value!r} (expected YYYY-MM-DD)")


def now_utc() -> datetime:
    """Current aware UTC time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by MySQL DATETIME) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def calendar_day(value: DayLike, *, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Canonical calendar-day string in the institution's fixed timezone.

    Strings and dates are taken as already being calendar days. Aware
    datetimes are converted into the fixed timezone first, so a client in a
    different zone cannot shift the day; naive datetimes are assumed UTC.
    """
    if isinstance(value, datetime):
        local = as_utc(value).astimezone(ZoneInfo(tz_name))
        return local.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return parse_iso_date(str(value).strip()).isoformat()


def day_range(start: DayLike, end: DayLike, *, tz_name: str = DEFAULT_TIMEZONE) -> tuple[str, str]:
    start_day = calendar_day(start, tz_name=tz_name)
    end_day = calendar_day(end, tz_name=tz_name)
    if end_day < start_day:
        raise ValidationError("End date must be on or after start date")
    return start_day, end_day
