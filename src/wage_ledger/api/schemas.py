"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from wage_ledger.calculators.types import (
    AdvanceStatus,
    AttendanceStatus,
    InvoiceStatus,
    PaymentMethod,
)


# ============================================================================
# Employee schemas
# ============================================================================


class EmployeeCreate(BaseModel):
    """Schema for adding an employee. The id is generated when omitted."""

    name: str = Field(min_length=1, max_length=200)
    daily_rate: Decimal = Field(gt=0)
    phone: str | None = None
    email: str | None = None
    role: str | None = None
    employee_type: str = "employee"
    join_date: date | None = None
    id: str | None = Field(default=None, min_length=1, max_length=64)


class EmployeeUpdate(BaseModel):
    """Schema for a partial employee edit. Only fields sent are changed."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    daily_rate: Decimal | None = Field(default=None, gt=0)
    phone: str | None = None
    email: str | None = None
    role: str | None = None
    employee_type: str | None = None
    join_date: date | None = None


class EmployeeStatusUpdate(BaseModel):
    status: str = Field(pattern="^(active|inactive)$")


class EmployeeResponse(BaseModel):
    """Schema for employee response."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    daily_rate: Decimal | None
    status: str
    phone: str | None = None
    email: str | None = None
    role: str | None = None
    employee_type: str
    join_date: date | None = None


# ============================================================================
# Attendance schemas
# ============================================================================


class AttendanceMark(BaseModel):
    """Schema for marking one employee's attendance."""

    employee_id: str = Field(min_length=1)
    attendance_date: date
    status: AttendanceStatus = AttendanceStatus.PRESENT
    check_in: str | None = None
    check_out: str | None = None
    overtime_hours: Decimal | None = Field(default=None, ge=0, le=24)
    notes: str | None = None


class AttendanceBulkRequest(BaseModel):
    """Schema for saving many attendance entries at once."""

    entries: list[AttendanceMark] = Field(min_length=1)


class MarkAllRequest(BaseModel):
    """Schema for marking many employees with one status."""

    employee_ids: list[str] = Field(min_length=1)
    attendance_date: date
    status: AttendanceStatus = AttendanceStatus.PRESENT


class AttendanceResponse(BaseModel):
    """Schema for attendance record response."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None
    employee_id: str
    date: date
    status: AttendanceStatus
    check_in: str | None = None
    check_out: str | None = None
    work_hours: Decimal
    overtime_hours: Decimal
    notes: str | None = None


class DailyAttendanceResponse(BaseModel):
    """Schema for head counts on one date."""

    model_config = ConfigDict(from_attributes=True)

    date: date
    total_employees: int
    present: int
    absent: int
    half_day: int
    not_marked: int


# ============================================================================
# Payroll schemas
# ============================================================================


class PayrollPreviewResponse(BaseModel):
    """Schema for a payroll calculation. Nothing is persisted."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: str
    period_start: date
    period_end: date
    daily_rate: Decimal
    rate_defaulted: bool
    work_days: int
    half_days: int
    total_work_hours: Decimal
    overtime_hours: Decimal
    basic_salary: Decimal
    overtime_amount: Decimal
    advance_deductions: Decimal
    net_salary: Decimal
    is_negative: bool
    advance_ids: list[str]
    calculation_id: UUID
    notes: list[str] = []


class PayrollCommitRequest(BaseModel):
    """Schema for committing one employee's payroll."""

    period_start: date
    period_end: date
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_date: date | None = None


class SalaryPaymentResponse(BaseModel):
    """Schema for a committed salary payment."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None
    employee_id: str
    pay_period_start: date
    pay_period_end: date
    payment_date: date
    payment_method: str
    basic_salary: Decimal
    overtime_amount: Decimal
    advance_deductions: Decimal
    net_salary: Decimal
    work_days: int
    total_work_hours: Decimal
    overtime_hours: Decimal
    daily_rate: Decimal
    rate_defaulted: bool
    calculation_id: str | None = None
    advance_ids: list[str] = []
    status: str


class CommitResponse(BaseModel):
    """Schema for commit response."""

    is_new: bool
    payment: SalaryPaymentResponse


class BulkPayRequest(BaseModel):
    """Schema for paying many employees.

    Without ``employee_ids`` every employee present on ``period_start`` is
    paid for that single day.
    """

    employee_ids: list[str] | None = None
    period_start: date
    period_end: date | None = None
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_date: date | None = None
    timeout_seconds: float | None = Field(default=None, gt=0)


class BatchFailureResponse(BaseModel):
    """Schema for one failed batch item."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    error_kind: str
    detail: str


class BatchResponse(BaseModel):
    """Schema for a bulk run result."""

    model_config = ConfigDict(from_attributes=True)

    succeeded: list[str]
    failed: list[BatchFailureResponse]
    details: dict[str, Any]


# ============================================================================
# Advance schemas
# ============================================================================


class AdvanceCreate(BaseModel):
    """Schema for granting an employee advance."""

    employee_id: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    advance_date: date | None = None
    notes: str | None = None
    payment_method: PaymentMethod | None = None


class CustomerAdvanceCreate(BaseModel):
    """Schema for recording a customer advance."""

    amount: Decimal = Field(gt=0)
    advance_date: date | None = None
    method: PaymentMethod = PaymentMethod.CASH
    notes: str | None = None


class AdvanceResponse(BaseModel):
    """Schema for advance response."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None
    entity_id: str
    amount: Decimal
    date: date
    status: AdvanceStatus
    notes: str | None = None
    payment_method: str | None = None
    payroll_run_id: str | None = None
    settled_on: date | None = None


# ============================================================================
# Receivables schemas
# ============================================================================


class InvoiceItemCreate(BaseModel):
    """Schema for one invoice line."""

    description: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0)
    price: Decimal = Field(gt=0)


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice."""

    customer_phone: str
    items: list[InvoiceItemCreate] = Field(min_length=1)
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0)
    invoice_date: date | None = None
    invoice_number: str | None = None


class InvoiceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    description: str
    quantity: Decimal
    price: Decimal
    amount: Decimal


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None
    customer_key: str
    invoice_number: str | None = None
    items: list[InvoiceItemResponse]
    sub_total: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    status: InvoiceStatus
    date: date


class MarkPaidRequest(BaseModel):
    """Schema for settling an invoice."""

    method: PaymentMethod = PaymentMethod.CASH
    paid_on: date | None = None


class PaymentResponse(BaseModel):
    """Schema for the payment created when an invoice is paid."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None
    invoice_id: str
    customer_key: str
    amount: Decimal
    method: str
    date: date


class BalanceResponse(BaseModel):
    """Schema for a customer's running balance.

    Positive is credit held for the customer; negative is owed.
    """

    customer_key: str
    advance_total: Decimal
    pending_total: Decimal
    balance: Decimal
    pending_invoices: list[InvoiceResponse]
    advances: list[AdvanceResponse]


# ============================================================================
# Report schemas
# ============================================================================


class EmployeeSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: str
    total_salary: Decimal
    pending_advances: Decimal
    total_work_days: int
    today_status: str
    today_work_hours: Decimal


class PeriodTotalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    year: int
    number: int
    label: str
    amount: Decimal
    payments: int


# ============================================================================
# Error schemas
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    store: str


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
