"""
Timezone Resolver Unit Tests

Time service first, timezone database second, UTC last.
"""

from datetime import date, datetime, timezone

import pytest

from integrations.timezone import TimezoneResolver
from tests.factories import time_service_transport

DENVER_SUMMER = {
    "datetime": "2024-06-02T03:30:00.000000-06:00",
    "raw_offset": -25200,
    "dst_offset": 3600,
    "dst": True,
    "timezone": "America/Denver",
}


@pytest.mark.asyncio
async def test_time_service_offset_and_business_date():
    """03:30 local is before the cutoff, so the business date is the previous day."""
    resolver = TimezoneResolver(transport=time_service_transport(DENVER_SUMMER), cutoff_hour=5)

    resolved = await resolver.resolve("America/Denver")
    await resolver.close()

    assert resolved.source == "time_service"
    assert resolved.offset_minutes == -360
    assert resolved.business_date == date(2024, 6, 1)
    assert resolved.local_time.hour == 3


@pytest.mark.asyncio
async def test_dst_offset_ignored_when_not_active():
    payload = {**DENVER_SUMMER, "datetime": "2024-01-15T12:00:00-07:00", "dst": False}
    resolver = TimezoneResolver(transport=time_service_transport(payload))

    resolved = await resolver.resolve("America/Denver")

    assert resolved.offset_minutes == -420
    assert resolved.business_date == date(2024, 1, 15)


@pytest.mark.asyncio
async def test_falls_back_to_tz_database_when_service_down():
    resolver = TimezoneResolver(transport=time_service_transport(None))

    resolved = await resolver.resolve("America/Denver")

    assert resolved.source == "tz_database"
    assert resolved.offset_minutes in (-360, -420)
    assert not resolved.degraded


@pytest.mark.asyncio
async def test_falls_back_on_malformed_payload():
    resolver = TimezoneResolver(transport=time_service_transport({"unexpected": True}))

    resolved = await resolver.resolve("America/Denver")

    assert resolved.source == "tz_database"


@pytest.mark.asyncio
async def test_falls_back_on_http_error():
    resolver = TimezoneResolver(transport=time_service_transport({"error": "unknown"}, status_code=404))

    resolved = await resolver.resolve("America/Denver")

    assert resolved.source == "tz_database"


@pytest.mark.asyncio
async def test_explicit_now_skips_time_service():
    transport = time_service_transport(None)
    resolver = TimezoneResolver(transport=transport, cutoff_hour=5)

    # 2024-06-01 10:00 UTC is 04:00 MDT, still the previous business day
    resolved = await resolver.resolve("America/Denver", now=datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc))

    assert resolved.source == "tz_database"
    assert resolved.offset_minutes == -360
    assert resolved.local_time.hour == 4
    assert resolved.business_date == date(2024, 5, 31)


def test_winter_offset_from_tz_database():
    resolver = TimezoneResolver()

    resolved = resolver.resolve_locally("America/Denver", datetime(2024, 1, 15, 19, 0, tzinfo=timezone.utc))

    assert resolved.offset_minutes == -420
    assert resolved.local_time.hour == 12


def test_east_of_utc_is_positive():
    resolver = TimezoneResolver()

    resolved = resolver.resolve_locally("Asia/Kolkata", datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))

    assert resolved.offset_minutes == 330


def test_unknown_zone_degrades_to_utc():
    resolver = TimezoneResolver(cutoff_hour=5)

    resolved = resolver.resolve_locally("Mars/Olympus_Mons", datetime(2024, 6, 1, 2, 0, tzinfo=timezone.utc))

    assert resolved.source == "utc"
    assert resolved.degraded
    assert resolved.offset_minutes == 0
    # Degraded mode uses the plain UTC calendar date
    assert resolved.business_date == date(2024, 6, 1)


@pytest.mark.asyncio
async def test_zone_unknown_locally_degrades_even_when_service_answers():
    resolver = TimezoneResolver(transport=time_service_transport(DENVER_SUMMER), cutoff_hour=5)

    resolved = await resolver.resolve("Mars/Olympus_Mons")
    await resolver.close()

    assert resolved.source == "utc"
    assert resolved.degraded
    assert resolved.offset_minutes == 0
