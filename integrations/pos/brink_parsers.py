"""
PAR Brink Response Parsers

Turn raw SOAP responses into normalized records. Parsers are pure: no I/O
and no shared state. A malformed element is skipped with a warning and the
rest of the document is still parsed.
"""

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from engines.services.business_date import as_utc
from integrations.base import (
    Employee,
    Order,
    OrderPayment,
    PaymentDetail,
    Punch,
    Shift,
    TipRecord,
)
from integrations.soap import extract_block, extract_repeated, extract_scalar, strip_elements

logger = logging.getLogger(__name__)

# Nested collections whose children reuse Id/Name/Total style tags
ORDER_CHILD_COLLECTIONS = (
    "Entries",
    "Items",
    "Payments",
    "Discounts",
    "Promotions",
    "Surcharges",
    "Taxes",
    "Fees",
)
SHIFT_CHILD_COLLECTIONS = ("Breaks",)

_MALFORMED = (ValueError, InvalidOperation, OverflowError, ValidationError)


def parse_orders(xml: str | None) -> list[Order]:
    """Parse GetOrders response. Orders with total <= 0 are dropped."""
    if not xml or not xml.strip():
        return []

    orders: list[Order] = []
    for index, block in enumerate(extract_repeated(xml, "Order")):
        try:
            order = _parse_order(block)
        except _MALFORMED as e:
            logger.warning(f"Skipping malformed order #{index + 1}: {e}")
            continue

        if order.total <= 0:
            logger.debug(f"Skipping order {order.id}: total {order.total}")
            continue
        orders.append(order)

    logger.info(f"Parsed {len(orders)} orders from PAR Brink response")
    return orders


def _parse_order(block: str) -> Order:
    own = strip_elements(block, *ORDER_CHILD_COLLECTIONS)

    order_id = extract_scalar(own, "Id")
    number = extract_scalar(own, "Number")
    total = _parse_decimal(extract_scalar(own, "Total"))
    if not order_id or not number:
        raise ValueError("order is missing Id or Number")
    if total is None:
        raise ValueError(f"order {order_id} has no readable Total")

    return Order(
        id=order_id,
        number=number,
        total=total,
        name=extract_scalar(own, "Name") or f"Order {number}",
        first_send_time=_parse_timestamp(own, "FirstSendTime"),
        modified_time=_parse_timestamp(own, "ModifiedTime"),
        business_date=_parse_date(extract_scalar(own, "BusinessDate")),
        payments=_parse_payments(block),
    )


def _parse_payments(order_block: str) -> list[OrderPayment]:
    container = extract_block(order_block, "Payments")
    if not container or not container.strip():
        return []

    payment_blocks = extract_repeated(container, "OrderPayment") or extract_repeated(container, "Payment")
    payments: list[OrderPayment] = []
    for index, block in enumerate(payment_blocks):
        own = strip_elements(block, "Details")
        try:
            payment = OrderPayment(
                id=extract_scalar(own, "Id"),
                amount=_parse_decimal(extract_scalar(own, "Amount")) or Decimal("0"),
                tender_id=extract_scalar(own, "TenderId"),
                tip_amount=_parse_decimal(extract_scalar(own, "TipAmount")) or Decimal("0"),
                employee_id=extract_scalar(own, "EmployeeId"),
                till_number=extract_scalar(own, "TillNumber"),
                details=_parse_payment_details(block),
            )
        except _MALFORMED as e:
            logger.warning(f"Skipping malformed payment #{index + 1}: {e}")
            continue
        payments.append(payment)
    return payments


def _parse_payment_details(payment_block: str) -> list[PaymentDetail]:
    container = extract_block(payment_block, "Details")
    if not container or not container.strip():
        return []

    detail_blocks = (
        extract_repeated(container, "OrderPaymentDetail")
        or extract_repeated(container, "PaymentDetail")
        or extract_repeated(container, "Detail")
    )
    details: list[PaymentDetail] = []
    for index, block in enumerate(detail_blocks):
        try:
            detail = PaymentDetail(
                id=extract_scalar(block, "Id"),
                amount=_parse_decimal(extract_scalar(block, "Amount")) or Decimal("0"),
                tip_amount=_parse_decimal(extract_scalar(block, "TipAmount")) or Decimal("0"),
                employee_id=extract_scalar(block, "EmployeeId"),
                till_number=extract_scalar(block, "TillNumber"),
            )
        except _MALFORMED as e:
            logger.warning(f"Skipping malformed payment detail #{index + 1}: {e}")
            continue
        details.append(detail)
    return details


def parse_shifts(xml: str | None) -> list[Shift]:
    """Parse GetShifts response. Shifts with no worked minutes are dropped."""
    if not xml or not xml.strip():
        return []

    shifts: list[Shift] = []
    for index, block in enumerate(extract_repeated(xml, "Shift")):
        try:
            shift = _parse_shift(block)
        except _MALFORMED as e:
            logger.warning(f"Skipping malformed shift #{index + 1}: {e}")
            continue

        if shift.minutes_worked <= 0:
            continue
        shifts.append(shift)

    logger.info(f"Parsed {len(shifts)} labor shifts from PAR Brink response")
    return shifts


def _parse_shift(block: str) -> Shift:
    own = strip_elements(block, *SHIFT_CHILD_COLLECTIONS)

    employee_id = extract_scalar(own, "EmployeeId")
    start_time = _parse_timestamp(own, "StartTime")
    if not employee_id:
        raise ValueError("shift has no EmployeeId")
    if start_time is None:
        raise ValueError(f"shift for employee {employee_id} has no StartTime")

    minutes = extract_scalar(own, "MinutesWorked")
    return Shift(
        shift_id=extract_scalar(own, "Id"),
        employee_id=employee_id,
        job_id=extract_scalar(own, "JobId"),
        business_date=_parse_date(extract_scalar(own, "BusinessDate")),
        start_time=start_time,
        end_time=_parse_timestamp(own, "EndTime"),
        minutes_worked=int(_parse_decimal(minutes) or 0),
        pay_rate=_parse_decimal(extract_scalar(own, "PayRate")),
    )


def parse_employees(xml: str | None) -> list[Employee]:
    """Parse GetEmployees response. Inactive employees are dropped."""
    if not xml or not xml.strip():
        return []

    employees: list[Employee] = []
    for index, block in enumerate(extract_repeated(xml, "Employee")):
        try:
            employee = _parse_employee(block)
        except _MALFORMED as e:
            logger.warning(f"Skipping malformed employee #{index + 1}: {e}")
            continue

        if employee.is_active:
            employees.append(employee)

    logger.info(f"Parsed {len(employees)} active employees from PAR Brink response")
    return employees


def _parse_employee(block: str) -> Employee:
    employee_id = extract_scalar(block, "EmployeeId") or extract_scalar(block, "Id")
    if not employee_id:
        raise ValueError("employee has no Id")

    active = extract_scalar(block, "Active")
    if active is None:
        active = extract_scalar(block, "IsActive")

    return Employee(
        employee_id=employee_id,
        first_name=extract_scalar(block, "FirstName") or "",
        last_name=extract_scalar(block, "LastName") or "",
        job_code_id=extract_scalar(block, "JobId") or extract_scalar(block, "JobCodeId"),
        pay_rate=_parse_decimal(extract_scalar(block, "PayRate")) or Decimal("0"),
        job_type_pay_rate=_parse_decimal(extract_scalar(block, "JobTypePayRate")) or Decimal("0"),
        # An absent flag means the roster did not report one
        is_active=active is None or active.lower() == "true",
    )


def parse_punches(xml: str | None, tz_name: str | None = None) -> list[Punch]:
    """
    Parse GetPunchDetailsByBusinessDate response.

    Punch times without an offset are wall-clock times in `tz_name`.
    """
    if not xml or not xml.strip():
        return []

    punches: list[Punch] = []
    for index, block in enumerate(extract_repeated(xml, "PunchDetail")):
        try:
            employee_id = extract_scalar(block, "EmployeeId")
            punch_type = extract_scalar(block, "Type") or extract_scalar(block, "PunchType")
            punch_time = _parse_timestamp(block, "LocalTime", tz_name) or _parse_timestamp(
                block, "PunchTime", tz_name
            )
            if not employee_id or not punch_type or punch_time is None:
                raise ValueError("punch is missing EmployeeId, Type or time")

            punches.append(
                Punch(
                    employee_id=employee_id,
                    punch_time=punch_time,
                    punch_type=punch_type,
                    time_zone=extract_scalar(block, "TimeZone"),
                    cost_center=extract_scalar(block, "CostCenter"),
                )
            )
        except _MALFORMED as e:
            logger.warning(f"Skipping malformed punch #{index + 1}: {e}")

    return punches


def extract_tips(orders: list[Order]) -> list[TipRecord]:
    """
    Collect tips from order payments and their split-tender details.

    Every payment or detail line with a tip greater than zero yields one
    record, so tips add up across detail records.
    """
    tips: list[TipRecord] = []
    for order in orders:
        for payment in order.payments:
            if payment.tip_amount > 0:
                tips.append(
                    TipRecord(
                        order_id=order.id,
                        order_number=order.number,
                        payment_id=payment.id,
                        tip_amount=payment.tip_amount,
                        tender_id=payment.tender_id,
                        payment_amount=payment.amount,
                        employee_id=payment.employee_id,
                        till_number=payment.till_number,
                        business_date=order.business_date,
                    )
                )

            for detail in payment.details:
                if detail.tip_amount <= 0:
                    continue
                tips.append(
                    TipRecord(
                        order_id=order.id,
                        order_number=order.number,
                        payment_id=payment.id,
                        detail_id=detail.id,
                        tip_amount=detail.tip_amount,
                        tender_id=payment.tender_id,
                        payment_amount=payment.amount,
                        employee_id=detail.employee_id or payment.employee_id,
                        till_number=detail.till_number or payment.till_number,
                        business_date=order.business_date,
                    )
                )
    return tips


# Helper functions

_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_timestamp(xml: str, tag: str, tz_name: str | None = None) -> datetime | None:
    """
    Read a Brink DateTimeOffset (<a:DateTime> child) or a plain timestamp.

    Values are returned in UTC; naive values are taken as UTC unless a
    local timezone is given.
    """
    block = extract_block(xml, tag)
    if not block or not block.strip():
        return None

    value = extract_scalar(block, "DateTime") if "<" in block else block.strip()
    parsed = _parse_datetime(value)
    if parsed is None:
        return None
    if parsed.tzinfo is None and tz_name:
        parsed = parsed.replace(tzinfo=ZoneInfo(tz_name))
    return as_utc(parsed)


def _parse_datetime(value: str | None) -> datetime | None:
    """Parse ISO datetime; .NET ticks beyond microseconds are truncated."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(_FRACTION.sub(r"\1", value.replace("Z", "+00:00")))
    except (ValueError, TypeError):
        return None


def _parse_date(value: str | None) -> date | None:
    """Parse ISO date string."""
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except (ValueError, TypeError):
        return None


def _parse_decimal(value: str | None) -> Decimal | None:
    """Parse numeric text to Decimal; raises on garbage."""
    if value is None or value == "":
        return None
    result = Decimal(value)
    if not result.is_finite():
        raise InvalidOperation(f"non-finite amount {value!r}")
    return result
