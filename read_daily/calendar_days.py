"""
Calendar-day resolution anchored to an owner's time zone.

Day keys are plain ``YYYY-MM-DD`` strings. Lexical order matches
chronological order, so they can be compared and sorted directly. All
arithmetic goes through ``datetime.date`` so daylight-saving transitions
and leap days never shift a result.
"""

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from read_daily.errors import ConfigurationError

DAY_FORMAT = "%Y-%m-%d"


def resolve_zone(zone: str) -> ZoneInfo:
    """
    Look up an IANA time zone.

    Args:
        zone: Zone identifier such as "Asia/Tokyo"

    Returns:
        The ZoneInfo instance

    Raises:
        ConfigurationError: If the identifier is empty or unknown
    """
    if not zone or not isinstance(zone, str):
        raise ConfigurationError(f"Invalid timezone: {zone!r}")
    try:
        return ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise ConfigurationError(f"Invalid timezone: {zone}")


def parse_day(day: str) -> date:
    """
    Parse a zero-padded YYYY-MM-DD day key.

    Raises:
        ValueError: If the key is malformed or not zero-padded
    """
    parsed = datetime.strptime(day, DAY_FORMAT).date()
    if parsed.isoformat() != day:
        raise ValueError(f"Day key must be zero-padded YYYY-MM-DD: {day!r}")
    return parsed


def day_key_of(instant: datetime, zone: str) -> str:
    """
    Project an instant onto the zone's local calendar date.

    Naive datetimes are treated as UTC.
    """
    tz = resolve_zone(zone)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).date().isoformat()


def today(zone: str, now: datetime | None = None) -> str:
    """Get today's day key in the zone. ``now`` defaults to the current UTC instant."""
    if now is None:
        now = datetime.now(timezone.utc)
    return day_key_of(now, zone)


def yesterday(zone: str, now: datetime | None = None) -> str:
    return add_days(today(zone, now), -1)


def add_days(day: str, days: int) -> str:
    return (parse_day(day) + timedelta(days=days)).isoformat()


def days_between(start: str, end: str) -> int:
    """
    Signed number of calendar days from ``start`` to ``end``.

    Args:
        start: Day key
        end: Day key

    Returns:
        ``end - start`` in whole days (negative when end is earlier)
    """
    return (parse_day(end) - parse_day(start)).days


def iter_days(start: str, end: str) -> Iterator[str]:
    """Yield every day key from start to end inclusive, ascending."""
    current = parse_day(start)
    last = parse_day(end)
    while current <= last:
        yield current.isoformat()
        current += timedelta(days=1)


def month_bounds(zone: str, year: int, month: int | None = None) -> tuple[str, str]:
    """
    Inclusive first and last day of a month, or of a whole year.

    The zone is validated so callers get the same error for a bad zone
    here as everywhere else; the bounds themselves are calendar facts.

    Args:
        zone: Owner's zone identifier
        year: Calendar year
        month: 1-12, or None for the whole year

    Returns:
        Tuple of (start day key, end day key)

    Raises:
        ConfigurationError: On an invalid zone, year or month
    """
    resolve_zone(zone)
    if not 1 <= year <= 9999:
        raise ConfigurationError(f"Invalid year: {year}")

    if month is None:
        return date(year, 1, 1).isoformat(), date(year, 12, 31).isoformat()

    if not 1 <= month <= 12:
        raise ConfigurationError(f"Invalid month: {month}")

    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1).isoformat(), date(year, month, last_day).isoformat()


def hours_remaining_today(zone: str, now: datetime | None = None) -> int:
    """Whole hours left before local midnight in the zone (0-24)."""
    tz = resolve_zone(zone)
    if now is None:
        now = datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local_now = now.astimezone(tz)
    next_day = local_now.date() + timedelta(days=1)
    midnight = datetime(next_day.year, next_day.month, next_day.day, tzinfo=tz)
    seconds = (midnight.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds()
    return max(0, min(24, int(seconds // 3600)))
