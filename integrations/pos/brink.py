"""
PAR Brink POS Integration

SOAP client for the Brink Sales, Labor and Settings web services.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Callable, TypeVar

import httpx

from backend.config import get_settings
from integrations.base import (
    BrinkProtocolError,
    BrinkUnavailableError,
    Employee,
    Order,
    POSIntegration,
    Punch,
    Shift,
    UpstreamError,
)
from integrations.pos.brink_parsers import parse_employees, parse_orders, parse_punches, parse_shifts
from integrations.soap import build_envelope, check_soap_response

logger = logging.getLogger(__name__)

T = TypeVar("T")

BRINK_SALES_NS = "http://www.brinksoftware.com/webservices/sales/v2"
BRINK_LABOR_NS = "http://www.brinksoftware.com/webservices/labor/v2"
BRINK_SETTINGS_NS = "http://www.brinksoftware.com/webservices/settings/v2"

SOAP_ACTIONS = {
    "GetOrders": f"{BRINK_SALES_NS}/ISalesWebService2/GetOrders",
    "GetShifts": f"{BRINK_LABOR_NS}/ILaborWebService2/GetShifts",
    "GetPunchDetailsByBusinessDate": f"{BRINK_LABOR_NS}/ILaborWebService2/GetPunchDetailsByBusinessDate",
    "GetEmployees": f"{BRINK_SETTINGS_NS}/ISettingsWebService2/GetEmployees",
}


class RequestThrottle:
    """
    Caps the number of concurrent Brink calls.

    One instance is shared by every client in the process and handed to
    each BrinkIntegration explicitly.
    """

    def __init__(self, max_concurrent: int):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.in_flight = 0
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def __aenter__(self) -> "RequestThrottle":
        await self._semaphore.acquire()
        self.in_flight += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.in_flight -= 1
        self._semaphore.release()


class BrinkIntegration(POSIntegration):
    """PAR Brink integration for orders, shifts, punches and employees."""

    provider_name = "par_brink"

    def __init__(
        self,
        access_token: str,
        location_token: str,
        config: dict | None = None,
        throttle: RequestThrottle | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(access_token, location_token, config)
        settings = get_settings()
        self.sales_url = self.config.get("sales_url", settings.brink_sales_url)
        self.labor_url = self.config.get("labor_url", settings.brink_labor_url)
        self.settings_url = self.config.get("settings_url", settings.brink_settings_url)
        self.timeout = self.config.get("timeout", settings.brink_timeout_seconds)
        self.throttle = throttle or RequestThrottle(settings.brink_max_concurrent_requests)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        # Operations that came back empty because Brink was unreachable
        self.unavailable_operations: list[str] = []

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "AccessToken": self.access_token,
                    "LocationToken": self.location_token,
                    "Content-Type": "text/xml; charset=utf-8",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def call(self, operation: str, url: str, envelope: str) -> str:
        """
        POST one SOAP envelope and return the response text.

        Raises BrinkUnavailableError on network failure or timeout and
        BrinkProtocolError on HTTP errors, SOAP faults or a non-zero
        ResultCode.
        """
        async with self.throttle:
            try:
                response = await self.client.post(
                    url,
                    content=envelope.encode("utf-8"),
                    headers={"SOAPAction": SOAP_ACTIONS[operation]},
                )
            except httpx.TransportError as e:
                raise BrinkUnavailableError(f"{operation} request failed: {e!r}") from e

        text = response.text
        if not response.is_success:
            # Faults usually arrive with HTTP 500 and carry the real reason
            check_soap_response(text, operation)
            raise BrinkProtocolError(
                None,
                f"HTTP {response.status_code}: {response.reason_phrase}",
                operation,
            )

        check_soap_response(text, operation)
        logger.debug(f"PAR Brink {operation} returned {len(text)} characters")
        return text

    async def _fetch(
        self,
        operation: str,
        url: str,
        envelope: str,
        parser: Callable[[str], list[T]],
    ) -> list[T]:
        try:
            text = await self.call(operation, url, envelope)
        except BrinkUnavailableError as e:
            logger.error(f"PAR Brink {operation} unavailable, continuing without it: {e}")
            self.unavailable_operations.append(operation)
            return []
        return parser(text)

    async def test_connection(self) -> bool:
        """Verify the access and location tokens with a GetEmployees call."""
        try:
            await self.call(
                "GetEmployees",
                self.settings_url,
                build_envelope(BRINK_SETTINGS_NS, "GetEmployees", wrapper=None),
            )
            return True
        except UpstreamError as e:
            logger.error(f"PAR Brink connection test failed: {e}")
            return False

    async def fetch_orders(
        self,
        business_date: date,
        modified_since: datetime | None = None,
    ) -> list[Order]:
        """
        Fetch orders for a business date.

        Args:
            business_date: Restaurant business date
            modified_since: Only orders modified after this time
        """
        envelope = build_envelope(
            BRINK_SALES_NS,
            "GetOrders",
            {
                "BusinessDate": business_date.isoformat(),
                "ModifiedTime": modified_since.isoformat() if modified_since else None,
            },
        )
        return await self._fetch("GetOrders", self.sales_url, envelope, parse_orders)

    async def fetch_shifts(self, business_date: date) -> list[Shift]:
        """Fetch labor shifts for a business date."""
        envelope = build_envelope(
            BRINK_LABOR_NS,
            "GetShifts",
            {"BusinessDate": business_date.isoformat()},
        )
        return await self._fetch("GetShifts", self.labor_url, envelope, parse_shifts)

    async def fetch_employees(self) -> list[Employee]:
        """Fetch the active employee roster."""
        envelope = build_envelope(BRINK_SETTINGS_NS, "GetEmployees", wrapper=None)
        return await self._fetch("GetEmployees", self.settings_url, envelope, parse_employees)

    async def fetch_punches(
        self,
        business_date: date,
        offset_minutes: int,
        tz_name: str | None = None,
    ) -> list[Punch]:
        """
        Fetch time-clock punches for a business date.

        Args:
            business_date: Restaurant business date
            offset_minutes: Signed UTC offset of the location
            tz_name: Location timezone for punch times without an offset
        """
        envelope = build_envelope(
            BRINK_LABOR_NS,
            "GetPunchDetailsByBusinessDate",
            {
                "businessDate": business_date.isoformat(),
                "timezoneOffsetMinutes": offset_minutes,
            },
            wrapper=None,
        )
        return await self._fetch(
            "GetPunchDetailsByBusinessDate",
            self.labor_url,
            envelope,
            lambda text: parse_punches(text, tz_name),
        )
