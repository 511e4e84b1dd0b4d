"""
Hourly Bucketing Engine

Maps orders and shifts onto 24 local-hour buckets for a location.

Order sales land in the local hour the order was first sent. A shift's
worked hours are split evenly across every local hour it spans; hours that
have not happened yet in the business day are skipped without
redistributing their share.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from engines.schemas.hourly_report import HourBucket
from engines.services.business_date import DEFAULT_CUTOFF_HOUR, is_future_hour, local_hour, to_local
from integrations.base import Employee, Order, Shift

logger = logging.getLogger(__name__)

# Brink reports no party size, so every order counts as one guest
GUESTS_PER_ORDER = 1

# Average wage sanity range (warning only)
MIN_REASONABLE_WAGE = Decimal("2.00")
MAX_REASONABLE_WAGE = Decimal("35.00")
MIN_HOURS_FOR_WAGE_CHECK = Decimal("0.25")

ZERO = Decimal("0")


def empty_buckets() -> list[HourBucket]:
    """24 zeroed buckets indexed by local hour."""
    return [HourBucket(hour=hour) for hour in range(24)]


def safe_divide(numerator: Decimal, denominator: Decimal | int) -> Decimal:
    """Division that yields 0 for a zero denominator."""
    if not denominator:
        return ZERO
    return Decimal(numerator) / Decimal(denominator)


def bucket_orders(orders: list[Order], tz_name: str) -> list[HourBucket]:
    """
    Accumulate order sales into local-hour buckets.

    Orders without a send time or with a non-positive total are ignored.
    """
    buckets = empty_buckets()

    for order in orders:
        if order.first_send_time is None or order.total <= 0:
            continue

        bucket = buckets[local_hour(order.first_send_time, tz_name)]
        bucket.sales += order.total
        bucket.orders += 1
        bucket.guests += GUESTS_PER_ORDER
        bucket.guest_average = safe_divide(bucket.sales, bucket.guests)
        bucket.order_average = safe_divide(bucket.sales, bucket.orders)

    return buckets


def shift_local_hours(shift: Shift, tz_name: str) -> tuple[int, int]:
    """
    First and last local hour occupied by a shift.

    The end is start + worked minutes and is exclusive: a shift ending at
    19:00 last occupies hour 18.
    """
    end = shift.start_time + timedelta(minutes=shift.minutes_worked)
    last_instant = max(shift.start_time, end - timedelta(microseconds=1))
    return to_local(shift.start_time, tz_name).hour, local_hour(last_instant, tz_name)


def shift_span(start_hour: int, end_hour: int) -> list[int]:
    """Local hours covered from start to end, wrapping past midnight."""
    if end_hour >= start_hour:
        return list(range(start_hour, end_hour + 1))
    return list(range(start_hour, 24)) + list(range(0, end_hour + 1))


def resolve_pay_rate(shift: Shift, employees_by_id: dict[str, Employee]) -> Decimal:
    """
    Rate used for labor cost.

    The shift's own rate wins when it carries one; otherwise the employee's
    effective rate (job-type override, else base rate).
    """
    if shift.pay_rate is not None:
        return shift.pay_rate
    employee = employees_by_id.get(shift.employee_id)
    if employee is None:
        return ZERO
    return employee.effective_pay_rate


def bucket_shifts(
    shifts: list[Shift],
    employees: list[Employee],
    tz_name: str,
    now_local_hour: int | None,
    cutoff_hour: int = DEFAULT_CUTOFF_HOUR,
) -> list[HourBucket]:
    """
    Apportion shift labor across local-hour buckets.

    Args:
        shifts: Parsed shifts (UTC start times)
        employees: Roster used for shifts without an embedded pay rate
        tz_name: Location IANA timezone
        now_local_hour: Current local hour; later hours of the business day
            are skipped. None disables the filter (past business dates).
        cutoff_hour: Business day boundary used to order hours

    Salaried shifts (rate 0) add hours and headcount but never cost.
    """
    buckets = empty_buckets()
    employees_by_id = {employee.employee_id: employee for employee in employees}

    for shift in shifts:
        if shift.minutes_worked <= 0:
            continue

        try:
            start_hour, end_hour = shift_local_hours(shift, tz_name)
        except (OverflowError, ValueError) as e:
            logger.warning(f"Skipping shift for employee {shift.employee_id}: {e}")
            continue

        span = shift_span(start_hour, end_hour)
        # Share is based on the full span, even if some hours are filtered out
        hours_per_bucket = shift.hours_worked / len(span)
        rate = resolve_pay_rate(shift, employees_by_id)

        for hour in span:
            if now_local_hour is not None and is_future_hour(hour, now_local_hour, cutoff_hour):
                continue

            bucket = buckets[hour]
            bucket.labor_hours += hours_per_bucket
            bucket.employees_working += 1
            if rate > 0:
                bucket.labor_cost += hours_per_bucket * rate

    _validate_labor(buckets)
    return buckets


def _validate_labor(buckets: list[HourBucket]) -> None:
    """
    Clamp labor fields to zero and flag unusual wages.

    Labor hours may exceed headcount (overlapping and split shifts) and are
    never capped.
    """
    for bucket in buckets:
        if bucket.labor_hours >= MIN_HOURS_FOR_WAGE_CHECK and bucket.labor_cost > 0:
            average_wage = bucket.labor_cost / bucket.labor_hours
            if average_wage < MIN_REASONABLE_WAGE or average_wage > MAX_REASONABLE_WAGE:
                logger.warning(
                    f"Unusual average wage at {bucket.label}: ${average_wage:.2f}/hour "
                    f"over {bucket.labor_hours:.2f} hours"
                )

        bucket.labor_hours = max(ZERO, bucket.labor_hours)
        bucket.labor_cost = max(ZERO, bucket.labor_cost)
        bucket.employees_working = max(0, bucket.employees_working)


def merge_buckets(sales: list[HourBucket], labor: list[HourBucket]) -> list[HourBucket]:
    """Combine sales and labor buckets into one array indexed by local hour."""
    sales_by_hour = {bucket.hour: bucket for bucket in sales}
    labor_by_hour = {bucket.hour: bucket for bucket in labor}

    merged = []
    for hour in range(24):
        sold = sales_by_hour.get(hour) or HourBucket(hour=hour)
        worked = labor_by_hour.get(hour) or HourBucket(hour=hour)
        merged.append(
            HourBucket(
                hour=hour,
                sales=max(ZERO, sold.sales),
                guests=max(0, sold.guests),
                orders=max(0, sold.orders),
                guest_average=sold.guest_average,
                order_average=sold.order_average,
                labor_hours=worked.labor_hours,
                labor_cost=worked.labor_cost,
                employees_working=worked.employees_working,
            )
        )
    return merged
