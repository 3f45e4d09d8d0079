# app/utils/time.py
"""
Time helpers. All timestamps are stored as naive UTC datetimes.
Venue-local windows ("today") are resolved with zoneinfo and converted back to UTC.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import settings
from app.utils.logger import get_logger

logger = get_logger(__name__)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalise an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def resolve_timezone(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or settings.DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{name}', falling back to {settings.DEFAULT_TIMEZONE}")
        return ZoneInfo(settings.DEFAULT_TIMEZONE)


def today_window(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Return [start, end) of the current local day in the given timezone,
    expressed as naive UTC datetimes.
    """
    tz = resolve_timezone(tz_name)
    now_utc = now or utcnow()
    local_now = now_utc.replace(tzinfo=timezone.utc).astimezone(tz)
    local_start = datetime(local_now.year, local_now.month, local_now.day, tzinfo=tz)
    # Add a calendar day in local time so DST transition days stay correct
    next_day = (local_start + timedelta(days=1)).date()
    local_end = datetime(next_day.year, next_day.month, next_day.day, tzinfo=tz)
    return to_naive_utc(local_start), to_naive_utc(local_end)
