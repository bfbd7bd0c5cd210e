"""Payroll calculation engine - derives net salary from attendance and advances."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from wage_ledger.calculators.attendance import AttendanceSummary, aggregate_attendance
from wage_ledger.calculators.periods import as_date
from wage_ledger.calculators.types import (
    MONEY_QUANTUM,
    AdvanceTransaction,
    AttendanceRecord,
    Employee,
)
from wage_ledger.config import Settings, get_settings
from wage_ledger.errors import NotFoundError, ValidationError
from wage_ledger.services.advance_ledger import AdvanceLedger
from wage_ledger.store.base import Collections, RecordStore

logger = logging.getLogger(__name__)


@dataclass
class PayrollCalculation:
    """Result of calculating pay for one employee over one period."""

    employee_id: str
    period_start: date
    period_end: date
    daily_rate: Decimal
    rate_defaulted: bool
    attendance: AttendanceSummary
    basic_salary: Decimal
    overtime_amount: Decimal
    advance_deductions: Decimal
    net_salary: Decimal
    advance_ids: tuple[str, ...]
    inputs_fingerprint: str
    calculation_id: UUID
    notes: list[str] = field(default_factory=list)

    @property
    def work_days(self) -> int:
        return self.attendance.work_days

    @property
    def half_days(self) -> int:
        return self.attendance.half_days

    @property
    def total_work_hours(self) -> Decimal:
        return self.attendance.total_work_hours

    @property
    def overtime_hours(self) -> Decimal:
        return self.attendance.total_overtime_hours

    @property
    def gross(self) -> Decimal:
        return self.basic_salary + self.overtime_amount

    @property
    def is_negative(self) -> bool:
        return self.net_salary < 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "daily_rate": str(self.daily_rate),
            "rate_defaulted": self.rate_defaulted,
            "work_days": self.work_days,
            "half_days": self.half_days,
            "total_work_hours": str(self.total_work_hours),
            "overtime_hours": str(self.overtime_hours),
            "basic_salary": str(self.basic_salary),
            "overtime_amount": str(self.overtime_amount),
            "advance_deductions": str(self.advance_deductions),
            "net_salary": str(self.net_salary),
            "is_negative": self.is_negative,
            "advance_ids": list(self.advance_ids),
            "calculation_id": str(self.calculation_id),
            "notes": list(self.notes),
        }


class PayrollCalculator:
    """Daily-wage payroll calculator.

    Calculation pipeline (stable order):
    1) Resolve the daily rate, falling back to the configured default
    2) Aggregate attendance over the inclusive period
    3) basic = daily_rate × work_days
    4) overtime = overtime_hours × (daily_rate / standard hours) × multiplier
    5) deductions = pending advances dated inside the period
    6) net = basic + overtime − deductions (never clamped)

    Reads only. The same inputs always yield the same calculation_id.
    """

    def __init__(
        self,
        store: RecordStore,
        settings: Settings | None = None,
        advances: AdvanceLedger | None = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.advances = advances or AdvanceLedger(
            store,
            collection=Collections.EMPLOYEE_ADVANCES,
            max_amount=self.settings.max_advance_amount,
        )

    async def calculate(
        self,
        employee_id: str,
        period_start: date | str,
        period_end: date | str,
    ) -> PayrollCalculation:
        """Calculate pay for one employee.

        Raises:
            ValidationError: If the period is inverted.
            NotFoundError: If the employee does not exist.
        """
        start = as_date(period_start)
        end = as_date(period_end)
        if end < start:
            raise ValidationError(
                f"Period end {end} is before period start {start}", field="period_end"
            )

        employee = await self.get_employee(employee_id)
        notes: list[str] = []

        # 1) Daily rate
        if employee.has_valid_rate:
            assert employee.daily_rate is not None
            daily_rate = employee.daily_rate
            rate_defaulted = False
        else:
            daily_rate = self.settings.default_daily_rate
            rate_defaulted = True
            notes.append(f"Daily rate missing; default {daily_rate} applied")
            logger.warning(
                "Employee %s has no valid daily rate, using default %s",
                employee.id,
                daily_rate,
            )

        # 2) Attendance
        records = await self._get_attendance(employee.id)
        summary = aggregate_attendance(records, start, end, employee_id=employee.id)

        # 3-4) Earnings
        basic = self._round(daily_rate * summary.work_days)
        hourly = daily_rate / self.settings.standard_hours_per_day
        overtime = self._round(
            summary.total_overtime_hours * hourly * self.settings.overtime_multiplier
        )

        # 5) Advances
        pending = await self.advances.pending(employee.id, start, end)
        deductions = sum((a.amount for a in pending), Decimal("0"))

        # 6) Net
        net = basic + overtime - deductions
        if net < 0:
            notes.append(f"Advances exceed earnings; net salary is {net}")
            logger.warning(
                "Negative net salary %s for employee %s in %s..%s", net, employee.id, start, end
            )

        fingerprint = self._compute_inputs_fingerprint(daily_rate, records, pending, start, end)
        return PayrollCalculation(
            employee_id=employee.id,
            period_start=start,
            period_end=end,
            daily_rate=daily_rate,
            rate_defaulted=rate_defaulted,
            attendance=summary,
            basic_salary=basic,
            overtime_amount=overtime,
            advance_deductions=deductions,
            net_salary=net,
            advance_ids=tuple(a.id for a in pending if a.id),
            inputs_fingerprint=fingerprint,
            calculation_id=self._generate_calculation_id(employee.id, start, end, fingerprint),
            notes=notes,
        )

    async def get_employee(self, employee_id: str) -> Employee:
        if not employee_id:
            raise ValidationError("employee_id is required", field="employee_id")
        record = await self.store.get(Collections.EMPLOYEES, employee_id)
        if record is None:
            raise NotFoundError("Employee", employee_id)
        return Employee.from_record(record)

    async def _get_attendance(self, employee_id: str) -> list[AttendanceRecord]:
        records = await self.store.query(Collections.ATTENDANCE, {"employee_id": employee_id})
        return [AttendanceRecord.from_record(r) for r in records]

    @staticmethod
    def _round(amount: Decimal) -> Decimal:
        return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)

    def _compute_inputs_fingerprint(
        self,
        daily_rate: Decimal,
        records: list[AttendanceRecord],
        advances: list[AdvanceTransaction],
        start: date,
        end: date,
    ) -> str:
        """Compute fingerprint of all inputs used in calculation."""
        inputs_data = {
            "daily_rate": str(daily_rate),
            "attendance": sorted(
                [
                    [r.date.isoformat(), r.status.value, str(r.work_hours), str(r.overtime_hours)]
                    for r in records
                    if start <= r.date <= end
                ]
            ),
            "advances": sorted([[a.id or "", str(a.amount)] for a in advances]),
        }
        json_str = json.dumps(inputs_data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]

    def _generate_calculation_id(
        self,
        employee_id: str,
        period_start: date,
        period_end: date,
        inputs_fingerprint: str,
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "employee_id": employee_id,
            "period_start": period_start.isoformat(),
            "period_end": period_end.isoformat(),
            "engine_version": self.settings.engine_version,
            "inputs_fingerprint": inputs_fingerprint,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])
