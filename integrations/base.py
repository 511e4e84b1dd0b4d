"""
Base Integration Classes

Abstract base class, upstream error types and the normalized data models
produced by POS parsers.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class UpstreamError(Exception):
    """Base class for failures talking to an upstream service."""


class BrinkUnavailableError(UpstreamError):
    """Network failure or timeout talking to an upstream service."""


class BrinkProtocolError(UpstreamError):
    """The POS answered, but with a SOAP fault, HTTP error or non-zero ResultCode."""

    def __init__(self, result_code: int | None, message: str, operation: str | None = None):
        self.result_code = result_code
        self.message = message
        self.operation = operation
        prefix = f"{operation}: " if operation else ""
        code = f" (code {result_code})" if result_code is not None else ""
        super().__init__(f"{prefix}PAR Brink error{code}: {message}")


class PaymentDetail(BaseModel):
    """One split-tender detail line under an order payment."""

    id: str | None = None
    amount: Decimal = Decimal("0")
    tip_amount: Decimal = Decimal("0")
    employee_id: str | None = None
    till_number: str | None = None


class OrderPayment(BaseModel):
    """Payment applied to an order."""

    id: str | None = None
    amount: Decimal = Decimal("0")
    tender_id: str | None = None
    tip_amount: Decimal = Decimal("0")
    employee_id: str | None = None
    till_number: str | None = None
    details: list[PaymentDetail] = Field(default_factory=list)


class Order(BaseModel):
    """Normalized sales order."""

    id: str
    number: str
    total: Decimal
    name: str
    first_send_time: datetime | None = Field(None, description="UTC time the order was first sent")
    modified_time: datetime | None = None
    business_date: date | None = None
    payments: list[OrderPayment] = Field(default_factory=list)


class Shift(BaseModel):
    """Normalized labor shift."""

    shift_id: str | None = None
    employee_id: str
    job_id: str | None = None
    business_date: date | None = None
    start_time: datetime = Field(..., description="UTC shift start")
    end_time: datetime | None = None
    minutes_worked: int
    # None when the shift carries no rate of its own
    pay_rate: Decimal | None = None

    @property
    def hours_worked(self) -> Decimal:
        return Decimal(self.minutes_worked) / Decimal(60)


class Employee(BaseModel):
    """Normalized employee from the settings service."""

    employee_id: str
    first_name: str = ""
    last_name: str = ""
    job_code_id: str | None = None
    pay_rate: Decimal = Decimal("0")
    job_type_pay_rate: Decimal = Decimal("0")
    is_active: bool = True

    @property
    def effective_pay_rate(self) -> Decimal:
        """Job-type override when set, otherwise the base rate."""
        if self.job_type_pay_rate > 0:
            return self.job_type_pay_rate
        return self.pay_rate


class Punch(BaseModel):
    """A single time-clock punch."""

    employee_id: str
    punch_time: datetime
    punch_type: str
    time_zone: str | None = None
    cost_center: str | None = None


class TipRecord(BaseModel):
    """Tip attributed to a payment or one of its detail lines."""

    order_id: str
    order_number: str
    payment_id: str | None = None
    detail_id: str | None = None
    tip_amount: Decimal
    tender_id: str | None = None
    payment_amount: Decimal = Decimal("0")
    employee_id: str | None = None
    till_number: str | None = None
    business_date: date | None = None


class POSIntegration(ABC):
    """Abstract base for POS systems feeding the hourly reports."""

    provider_name: str

    def __init__(
        self,
        access_token: str,
        location_token: str,
        config: dict | None = None,
    ):
        self.access_token = access_token
        self.location_token = location_token
        self.config = config or {}

    @abstractmethod
    async def test_connection(self) -> bool:
        """Verify the integration credentials are accepted."""
        pass

    @abstractmethod
    async def fetch_orders(
        self,
        business_date: date,
        modified_since: datetime | None = None,
    ) -> list[Order]:
        """Fetch orders for a business date."""
        pass

    @abstractmethod
    async def fetch_shifts(self, business_date: date) -> list[Shift]:
        """Fetch labor shifts for a business date."""
        pass

    @abstractmethod
    async def fetch_employees(self) -> list[Employee]:
        """Fetch the active employee roster."""
        pass

    async def close(self):
        """Release any network resources."""
        pass
