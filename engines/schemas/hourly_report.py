"""
Hourly Report Schemas

Bucket and report models for the hourly sales/labor engine.
"""

from decimal import Decimal

from pydantic import BaseModel, Field


class HourBucket(BaseModel):
    """
    Accumulator for one local hour of the business day.

    Mutable while a single request is being processed; averages are
    recomputed by the engine after each change.
    """

    hour: int | None = Field(None, ge=0, le=23, description="Local hour of day; None for totals")

    # Sales
    sales: Decimal = Decimal("0")
    guests: int = 0
    orders: int = 0
    guest_average: Decimal = Decimal("0")
    order_average: Decimal = Decimal("0")

    # Labor
    labor_hours: Decimal = Decimal("0")
    labor_cost: Decimal = Decimal("0")
    employees_working: int = 0

    labor_percentage: Decimal = Decimal("0")

    @property
    def label(self) -> str:
        if self.hour is None:
            return "Total"
        return f"{self.hour:02d}:00"


class DailyReport(BaseModel):
    """24 hourly buckets in business-day order plus a totals row."""

    buckets: list[HourBucket]
    totals: HourBucket
    labor_percentage: Decimal
    overall_guest_average: Decimal

    @property
    def total_sales(self) -> Decimal:
        return self.totals.sales

    @property
    def total_labor_cost(self) -> Decimal:
        return self.totals.labor_cost

    @property
    def total_labor_hours(self) -> Decimal:
        return self.totals.labor_hours

    def bucket(self, hour: int) -> HourBucket:
        """Bucket for a local hour."""
        for bucket in self.buckets:
            if bucket.hour == hour:
                return bucket
        raise KeyError(hour)
