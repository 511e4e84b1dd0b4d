"""
Timezone Resolver

Resolves a location's business date and UTC offset. Asks an external time
service (WorldTimeAPI response shape) first, falls back to the runtime
timezone database, and finally degrades to UTC. Never raises.
"""

import logging
from datetime import date, datetime, timezone
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from pydantic import BaseModel

from backend.config import get_settings
from engines.services.business_date import (
    as_utc,
    business_date_for,
    local_time_and_offset,
    offset_minutes_from_seconds,
)

logger = logging.getLogger(__name__)


class ResolvedTime(BaseModel):
    """Business date and offset for a timezone at a point in time."""

    timezone: str
    business_date: date
    offset_minutes: int
    local_time: datetime
    source: Literal["time_service", "tz_database", "utc"]

    @property
    def degraded(self) -> bool:
        return self.source == "utc"


class TimezoneResolver:
    """Business-date resolver backed by an external time service."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        cutoff_hour: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.time_service_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.time_service_timeout_seconds
        self.cutoff_hour = cutoff_hour if cutoff_hour is not None else settings.business_day_cutoff_hour
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_timezone_now(self, tz_name: str) -> dict:
        """
        Query the time service for the zone's current local time.

        Returns dict with local_time, raw_offset_seconds, dst_offset_seconds
        and dst_active. Raises on transport errors or malformed payloads.
        """
        response = await self.client.get(f"{self.base_url}/{tz_name}")
        response.raise_for_status()
        data = response.json()

        raw_offset = data["raw_offset"]
        dst_offset = data["dst_offset"]
        if raw_offset is None or dst_offset is None:
            raise ValueError(f"Time service returned no offset for {tz_name}")

        return {
            "local_time": datetime.fromisoformat(data["datetime"].replace("Z", "+00:00")),
            "raw_offset_seconds": int(raw_offset),
            "dst_offset_seconds": int(dst_offset),
            "dst_active": bool(data.get("dst", False)),
        }

    async def resolve(self, tz_name: str, now: datetime | None = None) -> ResolvedTime:
        """
        Resolve business date and signed offset minutes for a timezone.

        When `now` is given the time service is skipped, since it can only
        answer for the present. A zone the local database cannot load
        degrades to UTC even if the time service knows it, because all
        bucketing happens locally.
        """
        if now is None and self.zone_is_known(tz_name):
            try:
                current = await self.get_timezone_now(tz_name)
                offset = offset_minutes_from_seconds(
                    current["raw_offset_seconds"],
                    current["dst_offset_seconds"],
                    current["dst_active"],
                )
                local = current["local_time"]
                return ResolvedTime(
                    timezone=tz_name,
                    business_date=business_date_for(local, self.cutoff_hour),
                    offset_minutes=offset,
                    local_time=local,
                    source="time_service",
                )
            except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Time service failed for {tz_name}, using tz database: {e}")

        return self.resolve_locally(tz_name, now)

    @staticmethod
    def zone_is_known(tz_name: str) -> bool:
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            return False
        return True

    def resolve_locally(self, tz_name: str, now: datetime | None = None) -> ResolvedTime:
        """Resolve from the runtime timezone database, degrading to UTC."""
        try:
            local, offset = local_time_and_offset(tz_name, now)
            source = "tz_database"
        except (ZoneInfoNotFoundError, ValueError) as e:
            logger.error(f"Unknown timezone {tz_name!r}, degrading to UTC: {e}")
            local = as_utc(now or datetime.now(timezone.utc))
            return ResolvedTime(
                timezone=tz_name,
                business_date=local.date(),
                offset_minutes=0,
                local_time=local,
                source="utc",
            )

        return ResolvedTime(
            timezone=tz_name,
            business_date=business_date_for(local, self.cutoff_hour),
            offset_minutes=offset,
            local_time=local,
            source=source,
        )
