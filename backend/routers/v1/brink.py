"""
PAR Brink Report Routes

Per-location sales, labor, tips and staffing reports, plus the
all-locations rollup. Every endpoint takes the same camelCase JSON body.
"""

from collections.abc import AsyncGenerator
from typing import Awaitable, TypeVar

from fastapi import APIRouter, Depends, HTTPException, status

from backend.schemas.report import (
    AllLocationsReport,
    AllLocationsRequest,
    ClockedInReport,
    DashboardData,
    EmployeeRoster,
    Envelope,
    LaborShiftsReport,
    ReportRequest,
    SalesSummary,
    TipsReport,
)
from backend.services.dashboard import DashboardService, InvalidReportRequest
from backend.services.locations import InvalidLocationToken

router = APIRouter()

T = TypeVar("T")


async def get_report_service() -> AsyncGenerator[DashboardService, None]:
    """Request-scoped report service."""
    service = DashboardService()
    try:
        yield service
    finally:
        await service.close()


async def run_report(operation: Awaitable[T]) -> Envelope[T]:
    """Await a report, turning request errors into 400s."""
    try:
        return Envelope(data=await operation)
    except (InvalidReportRequest, InvalidLocationToken) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.post(
    "/dashboard",
    response_model=Envelope[DashboardData],
    summary="Hourly dashboard",
    description="Hourly sales, guests, labor hours, labor cost and labor percentage for one location.",
)
async def dashboard(
    body: ReportRequest,
    service: DashboardService = Depends(get_report_service),
) -> Envelope[DashboardData]:
    return await run_report(service.build_dashboard(body))


@router.post(
    "/sales",
    response_model=Envelope[SalesSummary],
    summary="Sales summary",
)
async def sales(
    body: ReportRequest,
    service: DashboardService = Depends(get_report_service),
) -> Envelope[SalesSummary]:
    return await run_report(service.sales_summary(body))


@router.post(
    "/tips",
    response_model=Envelope[TipsReport],
    summary="Tips report",
    description="Tips from order payments, including split-tender detail lines.",
)
async def tips(
    body: ReportRequest,
    service: DashboardService = Depends(get_report_service),
) -> Envelope[TipsReport]:
    return await run_report(service.tips_report(body))


@router.post(
    "/labor-shifts",
    response_model=Envelope[LaborShiftsReport],
    summary="Labor shifts",
)
async def labor_shifts(
    body: ReportRequest,
    service: DashboardService = Depends(get_report_service),
) -> Envelope[LaborShiftsReport]:
    return await run_report(service.labor_shifts(body))


@router.post(
    "/employees",
    response_model=Envelope[EmployeeRoster],
    summary="Active employee roster",
)
async def employees(
    body: ReportRequest,
    service: DashboardService = Depends(get_report_service),
) -> Envelope[EmployeeRoster]:
    return await run_report(service.employee_roster(body))


@router.post(
    "/clocked-in",
    response_model=Envelope[ClockedInReport],
    summary="Currently clocked-in employees",
)
async def clocked_in(
    body: ReportRequest,
    service: DashboardService = Depends(get_report_service),
) -> Envelope[ClockedInReport]:
    return await run_report(service.clocked_in(body))


@router.post(
    "/reports",
    response_model=Envelope[AllLocationsReport],
    summary="All-locations dashboards",
    description="Dashboard for every configured location. Failed locations are listed with their error.",
)
async def all_reports(
    body: AllLocationsRequest,
    service: DashboardService = Depends(get_report_service),
) -> Envelope[AllLocationsReport]:
    return await run_report(service.all_location_reports(body.access_token, body.business_date))
