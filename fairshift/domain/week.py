"""Canonical Monday-Friday work-week normalization in a reference timezone."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fairshift.domain.models import WORKWEEK, DateRange, Weekday


DateInput = Union[date, datetime, str, DateRange]


class InvalidDateError(ValueError):
    """Raised when a date or timezone input cannot be interpreted."""


def resolve_timezone(timezone_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidDateError(f"Unknown reference timezone: {timezone_name!r}") from exc


def parse_calendar_date(value: str) -> date:
    """Parse a strict YYYY-MM-DD calendar date string."""
    if not isinstance(value, str):
        raise InvalidDateError(f"Calendar date must be a string, got {type(value).__name__}")
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise InvalidDateError(f"date must follow YYYY-MM-DD format, got {value!r}") from exc


def parse_instant(value: Union[datetime, str]) -> datetime:
    """Parse a service timestamp into an aware UTC datetime.

    Timestamps without an offset are UTC, which is how the scheduling service
    stores workday dates.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise InvalidDateError(f"Unparseable timestamp: {value!r}") from exc
    else:
        raise InvalidDateError(f"Timestamp must be a string, got {type(value).__name__}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_local_date(value: Union[date, datetime, str], timezone_name: str) -> date:
    """Return the calendar date of ``value`` as seen in the reference timezone.

    Aware datetimes are shifted into the zone. Naive datetimes and date-only
    values are already wall-clock values of the reference timezone.
    """
    zone = resolve_timezone(timezone_name)
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return parse_calendar_date(text)
        try:
            value = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidDateError(f"Unparseable date: {value!r}") from exc
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(zone).date()
    if isinstance(value, date):
        return value
    raise InvalidDateError(f"Unsupported date input type: {type(value).__name__}")


def normalize_week(value: DateInput, timezone_name: str) -> DateRange:
    """Snap any date input to the Monday-Friday week containing it."""
    if isinstance(value, DateRange):
        value = value.from_date
    local_day = to_local_date(value, timezone_name)
    week_start = local_day - timedelta(days=local_day.weekday())
    week_end = week_start + timedelta(days=4)
    return DateRange(from_date=week_start, to_date=week_end, week_start=week_start)


def week_dates(week: DateRange) -> dict[Weekday, date]:
    return {
        weekday: week.week_start + timedelta(days=offset)
        for offset, weekday in enumerate(WORKWEEK)
    }


def current_week(timezone_name: str, now: Optional[datetime] = None) -> DateRange:
    """The week containing ``now``; a naive ``now`` is wall-clock time, as in normalize_week."""
    return normalize_week(now or datetime.now(timezone.utc), timezone_name)
