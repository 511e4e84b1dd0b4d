"""
Clocked-In Tracker

Replays time-clock punches to find who is on the floor right now.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel

from engines.services.business_date import as_utc
from integrations.base import Employee, Punch

CLOCK_IN_TYPES = {"in", "start"}
BREAK_TYPES = {"break"}


class ClockedInEmployee(BaseModel):
    """An active roster employee currently working or on break."""

    employee_id: str
    first_name: str
    last_name: str
    clock_in_time: datetime
    duration_minutes: int
    status: Literal["clocked-in", "on-break"]


def current_state(punches: list[Punch]) -> tuple[str | None, datetime | None]:
    """
    Replay one employee's punches in order.

    Returns (status, clock_in_time); status is None once clocked out.
    """
    status: str | None = None
    clock_in_time: datetime | None = None

    for punch in sorted(punches, key=lambda p: as_utc(p.punch_time)):
        kind = punch.punch_type.strip().lower()
        if kind in CLOCK_IN_TYPES:
            if status is None:
                clock_in_time = as_utc(punch.punch_time)
            status = "clocked-in"
        elif kind in BREAK_TYPES:
            if status is None:
                clock_in_time = as_utc(punch.punch_time)
            status = "on-break"
        else:
            status = None
            clock_in_time = None

    return status, clock_in_time


def clocked_in(
    employees: list[Employee],
    punches: list[Punch],
    now: datetime | None = None,
) -> list[ClockedInEmployee]:
    """
    Employees from the active roster whose last punch leaves them on shift.

    Duration counts from the first clock-in of the current stint.
    """
    now_utc = as_utc(now or datetime.now(timezone.utc))
    roster = {employee.employee_id: employee for employee in employees if employee.is_active}

    by_employee: dict[str, list[Punch]] = defaultdict(list)
    for punch in punches:
        by_employee[punch.employee_id].append(punch)

    working: list[ClockedInEmployee] = []
    for employee_id, employee_punches in by_employee.items():
        employee = roster.get(employee_id)
        if employee is None:
            continue

        status, clock_in_time = current_state(employee_punches)
        if status is None or clock_in_time is None:
            continue

        working.append(
            ClockedInEmployee(
                employee_id=employee_id,
                first_name=employee.first_name,
                last_name=employee.last_name,
                clock_in_time=clock_in_time,
                duration_minutes=max(0, int((now_utc - clock_in_time).total_seconds() // 60)),
                status=status,
            )
        )

    return sorted(working, key=lambda e: e.clock_in_time)
