"""Typed entity records for the ledger pipeline.

Records arrive from the store as loose dicts. Each entity exposes a
``from_record`` constructor that validates required fields and rejects
malformed data before it reaches aggregation, and a ``to_record`` that
produces the JSON-safe store payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping

from wage_ledger.calculators.periods import as_date
from wage_ledger.calculators.time_arithmetic import (
    format_clock_time,
    parse_clock_time,
    work_hours,
)
from wage_ledger.errors import ValidationError

MONEY_QUANTUM = Decimal("0.01")
HOURS_QUANTUM = Decimal("0.01")
MAX_HOURS = Decimal("24")


class AttendanceStatus(str, Enum):
    """Attendance status values."""

    PRESENT = "present"
    ABSENT = "absent"
    HALF_DAY = "half_day"


class AdvanceStatus(str, Enum):
    """Advance lifecycle: pending → paid | deducted."""

    PENDING = "pending"
    PAID = "paid"
    DEDUCTED = "deducted"


class InvoiceStatus(str, Enum):
    """Invoice lifecycle: pending → paid."""

    PENDING = "pending"
    PAID = "paid"


class SalaryPaymentStatus(str, Enum):
    """A salary payment is written pending and promoted once its advances are swept."""

    PENDING = "pending"
    PAID = "paid"


class PaymentMethod(str, Enum):
    """Accepted payment methods."""

    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"
    CHEQUE = "cheque"


# ===== Field coercion =====


def to_money(value: Any, field_name: str = "amount") -> Decimal:
    """Coerce to a Decimal rounded to paise."""
    if value is None or value == "":
        raise ValidationError(f"{field_name} is required", field=field_name)
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}: {value!r}", field=field_name) from None
    if not amount.is_finite():
        raise ValidationError(f"Invalid {field_name}: {value!r}", field=field_name)
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def to_hours(value: Any, field_name: str) -> Decimal:
    """Coerce to hours within [0, 24]; missing means zero."""
    if value is None or value == "":
        return Decimal("0")
    hours = to_money(value, field_name)
    if hours < 0 or hours > MAX_HOURS:
        raise ValidationError(f"Invalid {field_name}: {value!r}", field=field_name)
    return hours.quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def to_positive_money(value: Any, field_name: str = "amount") -> Decimal:
    amount = to_money(value, field_name)
    if amount <= 0:
        raise ValidationError(f"{field_name} must be positive", field=field_name)
    return amount


def _require(record: Mapping[str, Any], key: str) -> Any:
    value = record.get(key)
    if value is None or value == "":
        raise ValidationError(f"{key} is required", field=key)
    return value


def _enum(enum_type: type[Enum], value: Any, field_name: str) -> Any:
    try:
        return enum_type(value)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value!r}", field=field_name) from None


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


# ===== Entities =====


@dataclass(frozen=True)
class Employee:
    """Daily-wage employee as read from the employees collection."""

    id: str
    name: str
    daily_rate: Decimal | None = None
    status: str = "active"
    phone: str | None = None
    email: str | None = None
    role: str | None = None
    employee_type: str = "employee"
    join_date: date | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Employee:
        rate = record.get("daily_rate")
        if rate in (None, ""):
            # Older records keep the rate under basic_salary
            rate = record.get("basic_salary")
        daily_rate = None
        if rate not in (None, ""):
            try:
                daily_rate = to_money(rate, "daily_rate")
            except ValidationError:
                daily_rate = None
        joined = record.get("join_date")
        return cls(
            id=str(_require(record, "id")),
            name=str(record.get("name") or ""),
            daily_rate=daily_rate,
            status=str(record.get("status") or "active"),
            phone=record.get("phone"),
            email=record.get("email"),
            role=record.get("role"),
            employee_type=str(record.get("employee_type") or "employee"),
            join_date=as_date(joined) if joined else None,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "daily_rate": str(self.daily_rate) if self.daily_rate is not None else None,
            "status": self.status,
            "phone": self.phone,
            "email": self.email,
            "role": self.role,
            "employee_type": self.employee_type,
            "join_date": _iso(self.join_date),
        }

    @property
    def has_valid_rate(self) -> bool:
        return self.daily_rate is not None and self.daily_rate > 0


@dataclass(frozen=True)
class AttendanceRecord:
    """One employee's attendance for one date."""

    employee_id: str
    date: date
    status: AttendanceStatus
    check_in: str | None = None
    check_out: str | None = None
    work_hours: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")
    notes: str | None = None
    id: str | None = None

    @classmethod
    def build(
        cls,
        *,
        employee_id: str,
        date: date | str,
        status: AttendanceStatus | str = AttendanceStatus.PRESENT,
        check_in: str | None = None,
        check_out: str | None = None,
        overtime_hours: Any = None,
        notes: str | None = None,
        id: str | None = None,
    ) -> AttendanceRecord:
        """Build a record, deriving work hours from the clock times."""
        if not employee_id:
            raise ValidationError("employee_id is required", field="employee_id")
        status = _enum(AttendanceStatus, status, "status")
        record_date = as_date(date)

        if status is AttendanceStatus.ABSENT:
            return cls(
                employee_id=str(employee_id),
                date=record_date,
                status=status,
                notes=notes,
                id=id,
            )

        check_in_time = parse_clock_time(check_in)
        check_out_time = parse_clock_time(check_out)
        return cls(
            employee_id=str(employee_id),
            date=record_date,
            status=status,
            check_in=format_clock_time(check_in_time) if check_in_time else check_in or None,
            check_out=format_clock_time(check_out_time) if check_out_time else check_out or None,
            work_hours=work_hours(check_in, check_out),
            overtime_hours=to_hours(overtime_hours, "overtime_hours"),
            notes=notes,
            id=id,
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> AttendanceRecord:
        stored_hours = record.get("work_hours")
        if stored_hours not in (None, ""):
            # Range check only; the value itself is always re-derived
            to_hours(stored_hours, "work_hours")
        return cls.build(
            employee_id=_require(record, "employee_id"),
            date=_require(record, "date"),
            status=record.get("status") or AttendanceStatus.PRESENT,
            check_in=record.get("check_in"),
            check_out=record.get("check_out"),
            overtime_hours=record.get("overtime_hours"),
            notes=record.get("notes"),
            id=record.get("id"),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "date": self.date.isoformat(),
            "status": self.status.value,
            "check_in": self.check_in,
            "check_out": self.check_out,
            "work_hours": str(self.work_hours),
            "overtime_hours": str(self.overtime_hours),
            "notes": self.notes,
        }


@dataclass(frozen=True)
class AdvanceTransaction:
    """Cash advanced to an employee or received from a customer."""

    entity_id: str
    amount: Decimal
    date: date
    status: AdvanceStatus = AdvanceStatus.PENDING
    notes: str | None = None
    payment_method: str | None = None
    payroll_run_id: str | None = None
    settled_on: date | None = None
    id: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> AdvanceTransaction:
        settled = record.get("settled_on")
        return cls(
            entity_id=str(_require(record, "entity_id")),
            amount=to_positive_money(record.get("amount")),
            date=as_date(_require(record, "date")),
            status=_enum(AdvanceStatus, record.get("status") or "pending", "status"),
            notes=record.get("notes"),
            payment_method=record.get("payment_method"),
            payroll_run_id=record.get("payroll_run_id"),
            settled_on=as_date(settled) if settled else None,
            id=record.get("id"),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "amount": str(self.amount),
            "date": self.date.isoformat(),
            "status": self.status.value,
            "notes": self.notes,
            "payment_method": self.payment_method,
            "payroll_run_id": self.payroll_run_id,
            "settled_on": _iso(self.settled_on),
        }

    @property
    def is_pending(self) -> bool:
        return self.status is AdvanceStatus.PENDING


@dataclass(frozen=True)
class SalaryTransaction:
    """Append-only salary disbursement entry with its reporting markers."""

    employee_id: str
    amount: Decimal
    date: date
    week_number: int
    month_number: int
    year: int
    payment_method: str = PaymentMethod.CASH.value
    salary_payment_id: str | None = None
    id: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> SalaryTransaction:
        return cls(
            employee_id=str(_require(record, "employee_id")),
            amount=to_money(record.get("amount")),
            date=as_date(_require(record, "date")),
            week_number=int(_require(record, "week_number")),
            month_number=int(_require(record, "month_number")),
            year=int(_require(record, "year")),
            payment_method=record.get("payment_method") or PaymentMethod.CASH.value,
            salary_payment_id=record.get("salary_payment_id"),
            id=record.get("id"),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "amount": str(self.amount),
            "date": self.date.isoformat(),
            "week_number": self.week_number,
            "month_number": self.month_number,
            "year": self.year,
            "payment_method": self.payment_method,
            "salary_payment_id": self.salary_payment_id,
        }


@dataclass(frozen=True)
class InvoiceItem:
    """A single invoice line."""

    description: str
    quantity: Decimal
    price: Decimal

    @property
    def amount(self) -> Decimal:
        return (self.quantity * self.price).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> InvoiceItem:
        description = record.get("description") or record.get("product_name")
        if not description:
            raise ValidationError("Item description is required", field="description")
        quantity = to_money(record.get("quantity"), "quantity")
        if quantity <= 0:
            raise ValidationError("quantity must be positive", field="quantity")
        return cls(
            description=str(description),
            quantity=quantity,
            price=to_positive_money(record.get("price"), "price"),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "quantity": str(self.quantity),
            "price": str(self.price),
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class Invoice:
    """Sales invoice (bill) owed by a customer until paid."""

    customer_key: str
    items: tuple[InvoiceItem, ...]
    tax_rate: Decimal
    date: date
    status: InvoiceStatus = InvoiceStatus.PENDING
    invoice_number: str | None = None
    id: str | None = None

    @property
    def sub_total(self) -> Decimal:
        return sum((item.amount for item in self.items), Decimal("0"))

    @property
    def tax_amount(self) -> Decimal:
        return (self.sub_total * self.tax_rate / 100).quantize(
            MONEY_QUANTUM, rounding=ROUND_HALF_UP
        )

    @property
    def total_amount(self) -> Decimal:
        return self.sub_total + self.tax_amount

    @property
    def is_pending(self) -> bool:
        return self.status is InvoiceStatus.PENDING

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Invoice:
        raw_items = record.get("items") or []
        if not raw_items:
            raise ValidationError("Invoice must have at least one item", field="items")
        tax_rate = to_money(record.get("tax_rate") or "0", "tax_rate")
        if tax_rate < 0:
            raise ValidationError("tax_rate cannot be negative", field="tax_rate")
        return cls(
            customer_key=str(_require(record, "customer_key")),
            items=tuple(InvoiceItem.from_record(item) for item in raw_items),
            tax_rate=tax_rate,
            date=as_date(_require(record, "date")),
            status=_enum(InvoiceStatus, record.get("status") or "pending", "status"),
            invoice_number=record.get("invoice_number"),
            id=record.get("id"),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "customer_key": self.customer_key,
            "invoice_number": self.invoice_number,
            "items": [item.to_record() for item in self.items],
            "sub_total": str(self.sub_total),
            "tax_rate": str(self.tax_rate),
            "tax_amount": str(self.tax_amount),
            "total_amount": str(self.total_amount),
            "status": self.status.value,
            "date": self.date.isoformat(),
        }


@dataclass(frozen=True)
class PaymentRecord:
    """Receipt created when an invoice is marked paid."""

    invoice_id: str
    customer_key: str
    amount: Decimal
    method: str
    date: date
    id: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> PaymentRecord:
        return cls(
            invoice_id=str(_require(record, "invoice_id")),
            customer_key=str(_require(record, "customer_key")),
            amount=to_money(record.get("amount")),
            method=str(record.get("method") or PaymentMethod.CASH.value),
            date=as_date(_require(record, "date")),
            id=record.get("id"),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "invoice_id": self.invoice_id,
            "customer_key": self.customer_key,
            "amount": str(self.amount),
            "method": self.method,
            "date": self.date.isoformat(),
        }


@dataclass(frozen=True)
class SalaryPayment:
    """Committed payroll disbursement summary."""

    employee_id: str
    pay_period_start: date
    pay_period_end: date
    payment_date: date
    payment_method: str
    basic_salary: Decimal
    overtime_amount: Decimal
    advance_deductions: Decimal
    net_salary: Decimal
    work_days: int = 0
    total_work_hours: Decimal = Decimal("0")
    overtime_hours: Decimal = Decimal("0")
    daily_rate: Decimal = Decimal("0")
    rate_defaulted: bool = False
    calculation_id: str | None = None
    advance_ids: tuple[str, ...] = field(default_factory=tuple)
    status: str = "paid"
    payslip_generated: bool = False
    id: str | None = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> SalaryPayment:
        return cls(
            employee_id=str(_require(record, "employee_id")),
            pay_period_start=as_date(_require(record, "pay_period_start")),
            pay_period_end=as_date(_require(record, "pay_period_end")),
            payment_date=as_date(_require(record, "payment_date")),
            payment_method=str(record.get("payment_method") or PaymentMethod.CASH.value),
            basic_salary=to_money(record.get("basic_salary"), "basic_salary"),
            overtime_amount=to_money(record.get("overtime_amount") or "0", "overtime_amount"),
            advance_deductions=to_money(
                record.get("advance_deductions") or "0", "advance_deductions"
            ),
            net_salary=to_money(record.get("net_salary"), "net_salary"),
            work_days=int(record.get("work_days") or 0),
            total_work_hours=to_money(record.get("total_work_hours") or "0", "total_work_hours"),
            overtime_hours=to_money(record.get("overtime_hours") or "0", "overtime_hours"),
            daily_rate=to_money(record.get("daily_rate") or "0", "daily_rate"),
            rate_defaulted=bool(record.get("rate_defaulted", False)),
            calculation_id=record.get("calculation_id"),
            advance_ids=tuple(record.get("advance_ids") or ()),
            status=str(record.get("status") or "paid"),
            payslip_generated=bool(record.get("payslip_generated", False)),
            id=record.get("id"),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "pay_period_start": self.pay_period_start.isoformat(),
            "pay_period_end": self.pay_period_end.isoformat(),
            "payment_date": self.payment_date.isoformat(),
            "payment_method": self.payment_method,
            "basic_salary": str(self.basic_salary),
            "overtime_amount": str(self.overtime_amount),
            "advance_deductions": str(self.advance_deductions),
            "net_salary": str(self.net_salary),
            "work_days": self.work_days,
            "total_work_hours": str(self.total_work_hours),
            "overtime_hours": str(self.overtime_hours),
            "daily_rate": str(self.daily_rate),
            "rate_defaulted": self.rate_defaulted,
            "calculation_id": self.calculation_id,
            "advance_ids": list(self.advance_ids),
            "status": self.status,
            "payslip_generated": self.payslip_generated,
        }

    @property
    def is_paid(self) -> bool:
        return self.status == SalaryPaymentStatus.PAID.value

    def overlaps(self, period_start: date, period_end: date) -> bool:
        return self.pay_period_start <= period_end and period_start <= self.pay_period_end
