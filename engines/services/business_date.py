"""
Business Date Calculator

Pure timezone math for restaurant business days. A business day starts at
the cutoff hour: local times before it belong to the previous calendar day.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

# Restaurant day boundary (local hour). One value for every location.
DEFAULT_CUTOFF_HOUR = 5


def business_date_for(local_time: datetime, cutoff_hour: int = DEFAULT_CUTOFF_HOUR) -> date:
    """Business date for a local wall-clock time."""
    if local_time.hour < cutoff_hour:
        return local_time.date() - timedelta(days=1)
    return local_time.date()


def offset_minutes_from_seconds(
    raw_offset_seconds: int,
    dst_offset_seconds: int = 0,
    dst_active: bool = False,
) -> int:
    """
    Signed UTC offset in whole minutes (east of UTC positive).

    Brink expects an Int32, so fractional minutes are rounded.
    """
    total = raw_offset_seconds + (dst_offset_seconds if dst_active else 0)
    return round(total / 60)


def as_utc(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_local(instant: datetime, tz_name: str) -> datetime:
    """Convert an instant to wall-clock time in an IANA zone (DST aware)."""
    return as_utc(instant).astimezone(ZoneInfo(tz_name))


def local_hour(instant: datetime, tz_name: str) -> int:
    return to_local(instant, tz_name).hour


def local_time_and_offset(tz_name: str, now: datetime | None = None) -> tuple[datetime, int]:
    """
    Local time and signed offset from the runtime timezone database.

    The offset is the wall clock reinterpreted as UTC minus real UTC.
    Raises ZoneInfoNotFoundError for unknown zones.
    """
    now_utc = as_utc(now or datetime.now(timezone.utc))
    local = now_utc.astimezone(ZoneInfo(tz_name))
    wall_as_utc = local.replace(tzinfo=timezone.utc)
    offset = round((wall_as_utc - now_utc).total_seconds() / 60)
    return local, offset


def business_hour_position(hour: int, cutoff_hour: int = DEFAULT_CUTOFF_HOUR) -> int:
    """Position of a local hour within the business day (0 = cutoff hour)."""
    return (hour - cutoff_hour) % 24


def business_day_hours(cutoff_hour: int = DEFAULT_CUTOFF_HOUR) -> list[int]:
    """The 24 local hours in business-day order."""
    return [(cutoff_hour + i) % 24 for i in range(24)]


def is_future_hour(hour: int, now_hour: int, cutoff_hour: int = DEFAULT_CUTOFF_HOUR) -> bool:
    """True when `hour` comes after `now_hour` within the same business day."""
    return business_hour_position(hour, cutoff_hour) > business_hour_position(now_hour, cutoff_hour)
