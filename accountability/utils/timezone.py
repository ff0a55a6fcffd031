from datetime import date, datetime, time, timezone as dt_timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def get_zoneinfo(tz_name: Optional[str]) -> Optional[ZoneInfo]:
    if not tz_name:
        return None
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def utcnow() -> datetime:
    """Current time as UTC-naive, the storage convention for every timestamp column."""
    return datetime.now(dt_timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize any datetime to UTC-naive (tzinfo=None) for consistent storage/comparison.
    - Aware datetimes are converted to UTC and tzinfo is stripped
    - Naive datetimes are returned as-is (assumed UTC)
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(dt_timezone.utc).replace(tzinfo=None)


def to_utc_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize any datetime to UTC-aware (tzinfo=UTC).
    - Aware datetimes are converted to UTC
    - Naive datetimes are assumed UTC and tz attached
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_timezone.utc)
    return dt.astimezone(dt_timezone.utc)


def local_date(dt: datetime, tz_name: Optional[str]) -> date:
    """Calendar date of a UTC(-naive) timestamp in the given timezone."""
    tz = get_zoneinfo(tz_name)
    aware = to_utc_aware(dt)
    return aware.astimezone(tz).date() if tz else aware.date()


def local_time_to_utc_naive(day: date, at: time, tz_name: Optional[str]) -> datetime:
    """Wall-clock time on a local calendar day, converted to UTC-naive."""
    tz = get_zoneinfo(tz_name) or dt_timezone.utc
    return to_utc_naive(datetime.combine(day, at, tzinfo=tz))
