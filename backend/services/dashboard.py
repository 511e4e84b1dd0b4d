"""
Brink Report Service

Runs one report request end to end:
1. Validate tokens and look up the location (fail fast)
2. Resolve the location's business date and current local hour
3. Fan out to PAR Brink concurrently; a failed source degrades the report
4. Bucket, merge and aggregate into the response payload
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Awaitable

import httpx

from backend.config import get_settings
from backend.schemas.report import (
    AllLocationsReport,
    ClockedInLine,
    ClockedInReport,
    DashboardData,
    EmployeeLine,
    EmployeeRoster,
    HourlyLabor,
    HourlySales,
    HourlyTotals,
    LaborShiftsReport,
    LocationReport,
    ReportRequest,
    SalesSummary,
    ShiftLine,
    TipLine,
    TipsReport,
    money,
)
from backend.services import cache
from backend.services.locations import Location, LocationDirectory, get_location_directory
from engines.schemas.hourly_report import DailyReport
from engines.services.clocked_in import clocked_in
from engines.services.hourly_buckets import (
    ZERO,
    bucket_orders,
    bucket_shifts,
    merge_buckets,
    resolve_pay_rate,
)
from engines.services.metrics import aggregate, summarize_tips
from integrations.base import Employee, Order, Shift, UpstreamError
from integrations.pos.brink import BrinkIntegration, RequestThrottle
from integrations.pos.brink_parsers import extract_tips
from integrations.timezone import ResolvedTime, TimezoneResolver

logger = logging.getLogger(__name__)

OPERATION_SOURCES = {
    "GetOrders": "orders",
    "GetShifts": "shifts",
    "GetEmployees": "employees",
    "GetPunchDetailsByBusinessDate": "punches",
}


class InvalidReportRequest(ValueError):
    """Request rejected before any upstream call."""


@lru_cache
def get_request_throttle() -> RequestThrottle:
    """Throttle shared by every Brink client in this process."""
    return RequestThrottle(get_settings().brink_max_concurrent_requests)


@dataclass
class ReportContext:
    """Per-request time context for one location."""

    location: Location
    business_date: date
    tz_name: str
    offset_minutes: int
    now_local_hour: int | None
    resolved: ResolvedTime


class DashboardService:
    """Sales/labor reporting over the PAR Brink SOAP API."""

    def __init__(
        self,
        locations: LocationDirectory | None = None,
        resolver: TimezoneResolver | None = None,
        throttle: RequestThrottle | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        cutoff_hour: int | None = None,
    ):
        settings = get_settings()
        self.cutoff_hour = cutoff_hour if cutoff_hour is not None else settings.business_day_cutoff_hour
        self.locations = locations if locations is not None else get_location_directory()
        self.resolver = resolver or TimezoneResolver(cutoff_hour=self.cutoff_hour)
        self.throttle = throttle or get_request_throttle()
        self._transport = transport

    async def close(self):
        await self.resolver.close()

    # ── Operations ────────────────────────────────────

    async def build_dashboard(self, request: ReportRequest, now: datetime | None = None) -> DashboardData:
        """
        Hourly sales and labor for one location and business date.

        Args:
            request: Tokens and optional business date
            now: Evaluation instant; None asks the time service for the present
        """
        location = self._validate(request.location_token, request.access_token)
        context = await self._context(location, request.business_date, now)

        client = self._client(request)
        try:
            data, degraded = await self._gather(
                client,
                {
                    "orders": client.fetch_orders(context.business_date),
                    "shifts": client.fetch_shifts(context.business_date),
                    "employees": self._roster(client, location),
                },
            )
        finally:
            await client.close()

        report = self._daily_report(data["orders"], data["shifts"], data["employees"], context)
        logger.info(
            f"Dashboard for {location.name} ({context.business_date}): "
            f"sales {report.total_sales}, labor {report.labor_percentage:.2f}%"
        )
        return DashboardData(
            location=location.name,
            location_id=location.location_id,
            business_date=context.business_date,
            hourly_sales=[HourlySales.from_bucket(bucket) for bucket in report.buckets],
            hourly_labor=[HourlyLabor.from_bucket(bucket) for bucket in report.buckets],
            totals=HourlyTotals.from_bucket(report.totals),
            total_sales=money(report.total_sales),
            total_guests=report.totals.guests,
            total_orders=report.totals.orders,
            total_labor_cost=money(report.total_labor_cost),
            total_labor_hours=money(report.total_labor_hours),
            labor_percentage=money(report.labor_percentage),
            overall_guest_average=money(report.overall_guest_average),
            degraded_sources=self._with_time_source(degraded, context),
        )

    async def sales_summary(self, request: ReportRequest, now: datetime | None = None) -> SalesSummary:
        """Order totals and hourly sales without labor."""
        location = self._validate(request.location_token, request.access_token)
        context = await self._context(location, request.business_date, now)

        client = self._client(request)
        try:
            data, degraded = await self._gather(client, {"orders": client.fetch_orders(context.business_date)})
        finally:
            await client.close()

        report = aggregate(bucket_orders(data["orders"], context.tz_name), self.cutoff_hour)
        return SalesSummary(
            location=location.name,
            location_id=location.location_id,
            business_date=context.business_date,
            total_sales=money(report.total_sales),
            order_count=report.totals.orders,
            average_order=money(report.totals.order_average),
            hourly_sales=[HourlySales.from_bucket(bucket) for bucket in report.buckets],
            degraded_sources=self._with_time_source(degraded, context),
        )

    async def tips_report(self, request: ReportRequest, now: datetime | None = None) -> TipsReport:
        """Tips from order payments and split-tender details."""
        location = self._validate(request.location_token, request.access_token)
        context = await self._context(location, request.business_date, now)

        client = self._client(request)
        try:
            data, degraded = await self._gather(client, {"orders": client.fetch_orders(context.business_date)})
        finally:
            await client.close()

        tips = extract_tips(data["orders"])
        summary = summarize_tips(tips)
        return TipsReport(
            location=location.name,
            location_id=location.location_id,
            business_date=context.business_date,
            total_tips=money(summary["total_tips"]),
            tip_count=summary["tip_count"],
            tips_by_employee={k: money(v) for k, v in summary["by_employee"].items()},
            tips=[
                TipLine(
                    order_id=tip.order_id,
                    order_number=tip.order_number,
                    payment_id=tip.payment_id,
                    detail_id=tip.detail_id,
                    tip_amount=money(tip.tip_amount),
                    tender_id=tip.tender_id,
                    payment_amount=money(tip.payment_amount),
                    employee_id=tip.employee_id,
                    till_number=tip.till_number,
                )
                for tip in tips
            ],
            degraded_sources=self._with_time_source(degraded, context),
        )

    async def labor_shifts(self, request: ReportRequest, now: datetime | None = None) -> LaborShiftsReport:
        """Shift-level labor with the pay rate and cost applied to each."""
        location = self._validate(request.location_token, request.access_token)
        context = await self._context(location, request.business_date, now)

        client = self._client(request)
        try:
            data, degraded = await self._gather(
                client,
                {
                    "shifts": client.fetch_shifts(context.business_date),
                    "employees": self._roster(client, location),
                },
            )
        finally:
            await client.close()

        employees_by_id = {employee.employee_id: employee for employee in data["employees"]}
        lines: list[ShiftLine] = []
        total_hours = ZERO
        total_cost = ZERO
        for shift in sorted(data["shifts"], key=lambda s: s.start_time):
            rate = resolve_pay_rate(shift, employees_by_id)
            cost = shift.hours_worked * rate if rate > 0 else ZERO
            employee = employees_by_id.get(shift.employee_id)
            lines.append(
                ShiftLine(
                    shift_id=shift.shift_id,
                    employee_id=shift.employee_id,
                    employee_name=f"{employee.first_name} {employee.last_name}".strip() if employee else None,
                    job_id=shift.job_id,
                    start_time=shift.start_time,
                    end_time=shift.end_time,
                    hours_worked=money(shift.hours_worked),
                    pay_rate=money(rate),
                    labor_cost=money(cost),
                )
            )
            total_hours += shift.hours_worked
            total_cost += cost

        return LaborShiftsReport(
            location=location.name,
            location_id=location.location_id,
            business_date=context.business_date,
            shifts=lines,
            total_hours=money(total_hours),
            total_labor_cost=money(total_cost),
            degraded_sources=self._with_time_source(degraded, context),
        )

    async def employee_roster(self, request: ReportRequest) -> EmployeeRoster:
        """Active employees for a location (cached)."""
        location = self._validate(request.location_token, request.access_token)

        client = self._client(request)
        try:
            employees = await self._roster(client, location)
        finally:
            await client.close()

        return EmployeeRoster(
            location=location.name,
            location_id=location.location_id,
            employees=[
                EmployeeLine(
                    employee_id=employee.employee_id,
                    first_name=employee.first_name,
                    last_name=employee.last_name,
                    job_code_id=employee.job_code_id,
                    pay_rate=money(employee.effective_pay_rate),
                )
                for employee in employees
            ],
            count=len(employees),
        )

    async def clocked_in(self, request: ReportRequest, now: datetime | None = None) -> ClockedInReport:
        """Employees currently working or on break."""
        location = self._validate(request.location_token, request.access_token)
        context = await self._context(location, request.business_date, now)

        client = self._client(request)
        try:
            data, degraded = await self._gather(
                client,
                {
                    "punches": client.fetch_punches(
                        context.business_date, context.offset_minutes, context.tz_name
                    ),
                    "employees": self._roster(client, location),
                },
            )
        finally:
            await client.close()

        working = clocked_in(data["employees"], data["punches"], now=context.resolved.local_time)
        return ClockedInReport(
            location=location.name,
            location_id=location.location_id,
            business_date=context.business_date,
            employees=[ClockedInLine(**employee.model_dump()) for employee in working],
            count=len(working),
            degraded_sources=self._with_time_source(degraded, context),
        )

    async def all_location_reports(
        self,
        access_token: str | None,
        business_date: date | None = None,
        now: datetime | None = None,
    ) -> AllLocationsReport:
        """
        Dashboards for every configured location.

        Locations run concurrently under the shared throttle; each location
        resolves its own business date when none is given.
        """
        if not access_token or not access_token.strip():
            raise InvalidReportRequest("accessToken is required")

        locations = self.locations.all()
        results = await asyncio.gather(
            *(
                self.build_dashboard(
                    ReportRequest(
                        location_token=location.token,
                        access_token=access_token,
                        business_date=business_date,
                    ),
                    now,
                )
                for location in locations
            ),
            return_exceptions=True,
        )

        entries: list[LocationReport] = []
        for location, result in zip(locations, results):
            if isinstance(result, Exception):
                if isinstance(result, UpstreamError):
                    logger.error(f"Report for {location.name} failed: {result}")
                else:
                    logger.exception(f"Report for {location.name} crashed", exc_info=result)
                entries.append(
                    LocationReport(
                        location=location.name,
                        location_id=location.location_id,
                        success=False,
                        error=str(result) or type(result).__name__,
                    )
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                entries.append(
                    LocationReport(
                        location=location.name,
                        location_id=location.location_id,
                        success=True,
                        dashboard=result,
                    )
                )

        succeeded = sum(1 for entry in entries if entry.success)
        logger.info(f"All-locations report: {succeeded}/{len(entries)} succeeded")
        return AllLocationsReport(
            business_date=business_date,
            locations=entries,
            succeeded=succeeded,
            failed=len(entries) - succeeded,
        )

    # ── Pipeline steps ────────────────────────────────

    def _validate(self, location_token: str | None, access_token: str | None) -> Location:
        if not location_token or not location_token.strip():
            raise InvalidReportRequest("locationToken is required")
        if not access_token or not access_token.strip():
            raise InvalidReportRequest("accessToken is required")
        return self.locations.resolve(location_token)

    async def _context(
        self,
        location: Location,
        business_date: date | None,
        now: datetime | None,
    ) -> ReportContext:
        resolved = await self.resolver.resolve(location.timezone, now)
        target = business_date or resolved.business_date

        # Future-hour filtering only applies to the business day in progress
        now_local_hour = resolved.local_time.hour if target == resolved.business_date else None

        return ReportContext(
            location=location,
            business_date=target,
            tz_name="UTC" if resolved.degraded else location.timezone,
            offset_minutes=resolved.offset_minutes,
            now_local_hour=now_local_hour,
            resolved=resolved,
        )

    def _client(self, request: ReportRequest) -> BrinkIntegration:
        return BrinkIntegration(
            request.access_token,
            request.location_token,
            throttle=self.throttle,
            transport=self._transport,
        )

    async def _gather(
        self,
        client: BrinkIntegration,
        calls: dict[str, Awaitable[list[Any]]],
    ) -> tuple[dict[str, list[Any]], list[str]]:
        """
        Await upstream calls concurrently.

        A call failing with an upstream error contributes an empty list and
        is named in the degraded sources; one failure never cancels the rest.
        """
        names = list(calls)
        results = await asyncio.gather(*calls.values(), return_exceptions=True)

        data: dict[str, list[Any]] = {}
        degraded: list[str] = []
        for name, result in zip(names, results):
            if isinstance(result, UpstreamError):
                logger.warning(f"PAR Brink {name} failed, reporting without it: {result}")
                data[name] = []
                degraded.append(name)
            elif isinstance(result, BaseException):
                raise result
            else:
                data[name] = result

        for operation in client.unavailable_operations:
            source = OPERATION_SOURCES.get(operation, operation)
            if source not in degraded:
                degraded.append(source)

        return data, degraded

    async def _roster(self, client: BrinkIntegration, location: Location) -> list[Employee]:
        key = cache.employee_roster_key(location.location_id)
        cached = await cache.get_cached(key)
        if cached is not None:
            return [Employee.model_validate(item) for item in cached]

        employees = await client.fetch_employees()
        if employees:
            await cache.set_cached(key, [employee.model_dump(mode="json") for employee in employees])
        return employees

    def _daily_report(
        self,
        orders: list[Order],
        shifts: list[Shift],
        employees: list[Employee],
        context: ReportContext,
    ) -> DailyReport:
        sales = bucket_orders(orders, context.tz_name)
        labor = bucket_shifts(shifts, employees, context.tz_name, context.now_local_hour, self.cutoff_hour)
        return aggregate(merge_buckets(sales, labor), self.cutoff_hour)

    @staticmethod
    def _with_time_source(degraded: list[str], context: ReportContext) -> list[str]:
        if context.resolved.degraded:
            return [*degraded, "timezone"]
        return degraded
