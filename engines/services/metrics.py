"""
Metrics Aggregator

Rolls hourly buckets up into a daily report with sales and labor KPIs.
"""

from collections import defaultdict
from decimal import Decimal

from engines.schemas.hourly_report import DailyReport, HourBucket
from engines.services.business_date import DEFAULT_CUTOFF_HOUR, business_day_hours
from engines.services.hourly_buckets import ZERO, safe_divide
from integrations.base import TipRecord

ONE_HUNDRED = Decimal("100")


def labor_percentage(labor_hours: Decimal, labor_cost: Decimal, sales: Decimal) -> Decimal:
    """
    Labor cost as a percentage of sales.

    Rules, in order:
    1. No labor hours -> 0
    2. Labor hours but no sales -> 100
    3. Otherwise labor_cost / sales * 100
    """
    if labor_hours == 0:
        return ZERO
    if sales == 0:
        return ONE_HUNDRED
    return labor_cost / sales * ONE_HUNDRED


def finalize_bucket(bucket: HourBucket) -> HourBucket:
    """Recompute the derived fields of a bucket in place."""
    bucket.guest_average = safe_divide(bucket.sales, bucket.guests)
    bucket.order_average = safe_divide(bucket.sales, bucket.orders)
    bucket.labor_percentage = labor_percentage(bucket.labor_hours, bucket.labor_cost, bucket.sales)
    return bucket


def aggregate(buckets: list[HourBucket], cutoff_hour: int = DEFAULT_CUTOFF_HOUR) -> DailyReport:
    """
    Build the daily report from 24 local-hour buckets.

    Buckets are returned in business-day order, starting at the cutoff hour.
    """
    by_hour = {bucket.hour: bucket for bucket in buckets}
    ordered = [finalize_bucket(by_hour.get(hour) or HourBucket(hour=hour)) for hour in business_day_hours(cutoff_hour)]

    totals = HourBucket(
        hour=None,
        sales=sum((b.sales for b in ordered), ZERO),
        guests=sum(b.guests for b in ordered),
        orders=sum(b.orders for b in ordered),
        labor_hours=sum((b.labor_hours for b in ordered), ZERO),
        labor_cost=sum((b.labor_cost for b in ordered), ZERO),
        employees_working=sum(b.employees_working for b in ordered),
    )
    finalize_bucket(totals)

    return DailyReport(
        buckets=ordered,
        totals=totals,
        labor_percentage=totals.labor_percentage,
        overall_guest_average=totals.guest_average,
    )


def summarize_tips(tips: list[TipRecord]) -> dict:
    """Total tips, count and per-employee totals."""
    by_employee: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tip in tips:
        by_employee[tip.employee_id or "unassigned"] += tip.tip_amount

    return {
        "total_tips": sum((tip.tip_amount for tip in tips), ZERO),
        "tip_count": len(tips),
        "by_employee": dict(by_employee),
    }
