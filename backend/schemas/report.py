"""
Report Pydantic Schemas

Request/response models for the PAR Brink reporting endpoints. The wire
format is camelCase; amounts are rounded floats.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from engines.schemas.hourly_report import HourBucket

T = TypeVar("T")


def money(value: Decimal) -> float:
    return round(float(value), 2)


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase, emits camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReportRequest(CamelModel):
    """
    Body shared by every per-location endpoint.

    Tokens are optional here so that a missing token is reported as a
    400 by the service before any upstream call, rather than a 422.
    """

    location_token: str | None = None
    access_token: str | None = None
    business_date: date | None = Field(
        default=None,
        description="Restaurant business date; defaults to the location's current one",
    )


class AllLocationsRequest(CamelModel):
    """Body for the all-locations report."""

    access_token: str | None = None
    business_date: date | None = None


class Envelope(CamelModel, Generic[T]):
    success: bool = True
    data: T


# ── Dashboard ─────────────────────────────────────────


class HourlySales(CamelModel):
    hour: int | None
    label: str
    sales: float
    guests: int
    orders: int
    guest_average: float
    order_average: float

    @classmethod
    def from_bucket(cls, bucket: HourBucket) -> "HourlySales":
        return cls(
            hour=bucket.hour,
            label=bucket.label,
            sales=money(bucket.sales),
            guests=bucket.guests,
            orders=bucket.orders,
            guest_average=money(bucket.guest_average),
            order_average=money(bucket.order_average),
        )


class HourlyLabor(CamelModel):
    hour: int | None
    label: str
    labor_hours: float
    labor_cost: float
    employees_working: int
    labor_percentage: float

    @classmethod
    def from_bucket(cls, bucket: HourBucket) -> "HourlyLabor":
        return cls(
            hour=bucket.hour,
            label=bucket.label,
            labor_hours=money(bucket.labor_hours),
            labor_cost=money(bucket.labor_cost),
            employees_working=bucket.employees_working,
            labor_percentage=money(bucket.labor_percentage),
        )


class HourlyTotals(HourlySales):
    labor_hours: float
    labor_cost: float
    employees_working: int
    labor_percentage: float

    @classmethod
    def from_bucket(cls, bucket: HourBucket) -> "HourlyTotals":
        return cls(
            **HourlySales.from_bucket(bucket).model_dump(),
            **HourlyLabor.from_bucket(bucket).model_dump(exclude={"hour", "label"}),
        )


class DashboardData(CamelModel):
    location: str
    location_id: str
    business_date: date
    hourly_sales: list[HourlySales]
    hourly_labor: list[HourlyLabor]
    totals: HourlyTotals
    total_sales: float
    total_guests: int
    total_orders: int
    total_labor_cost: float
    total_labor_hours: float
    labor_percentage: float
    overall_guest_average: float
    degraded_sources: list[str] = Field(default_factory=list)


# ── Sales / tips / labor / roster ─────────────────────


class SalesSummary(CamelModel):
    location: str
    location_id: str
    business_date: date
    total_sales: float
    order_count: int
    average_order: float
    hourly_sales: list[HourlySales]
    degraded_sources: list[str] = Field(default_factory=list)


class TipLine(CamelModel):
    order_id: str
    order_number: str
    payment_id: str | None
    detail_id: str | None
    tip_amount: float
    tender_id: str | None
    payment_amount: float
    employee_id: str | None
    till_number: str | None


class TipsReport(CamelModel):
    location: str
    location_id: str
    business_date: date
    total_tips: float
    tip_count: int
    tips_by_employee: dict[str, float]
    tips: list[TipLine]
    degraded_sources: list[str] = Field(default_factory=list)


class ShiftLine(CamelModel):
    shift_id: str | None
    employee_id: str
    employee_name: str | None
    job_id: str | None
    start_time: datetime
    end_time: datetime | None
    hours_worked: float
    pay_rate: float
    labor_cost: float


class LaborShiftsReport(CamelModel):
    location: str
    location_id: str
    business_date: date
    shifts: list[ShiftLine]
    total_hours: float
    total_labor_cost: float
    degraded_sources: list[str] = Field(default_factory=list)


class EmployeeLine(CamelModel):
    employee_id: str
    first_name: str
    last_name: str
    job_code_id: str | None
    pay_rate: float


class EmployeeRoster(CamelModel):
    location: str
    location_id: str
    employees: list[EmployeeLine]
    count: int


class ClockedInLine(CamelModel):
    employee_id: str
    first_name: str
    last_name: str
    clock_in_time: datetime
    duration_minutes: int
    status: str


class ClockedInReport(CamelModel):
    location: str
    location_id: str
    business_date: date
    employees: list[ClockedInLine]
    count: int
    degraded_sources: list[str] = Field(default_factory=list)


class LocationReport(CamelModel):
    """One entry of the all-locations report; failed locations carry `error`."""

    location: str
    location_id: str
    success: bool
    dashboard: DashboardData | None = None
    error: str | None = None


class AllLocationsReport(CamelModel):
    business_date: date | None
    locations: list[LocationReport]
    succeeded: int
    failed: int
