"""Attendance aggregation over a payroll period."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from wage_ledger.calculators.types import AttendanceRecord, AttendanceStatus
from wage_ledger.errors import ValidationError


@dataclass(frozen=True)
class AttendanceSummary:
    """Work-day counts and hour totals for one employee over one period.

    Only ``present`` days count toward ``work_days``. Half days are kept in
    their own bucket and are not credited as a fraction of a day.
    """

    work_days: int = 0
    half_days: int = 0
    absent_days: int = 0
    total_work_hours: Decimal = Decimal("0")
    total_overtime_hours: Decimal = Decimal("0")

    @property
    def marked_days(self) -> int:
        return self.work_days + self.half_days + self.absent_days


def aggregate_attendance(
    records: Iterable[AttendanceRecord],
    period_start: date,
    period_end: date,
    employee_id: str | None = None,
) -> AttendanceSummary:
    """Reduce attendance records to an AttendanceSummary.

    Records outside [period_start, period_end] are ignored. If the input
    holds more than one record for the same date, the last one wins.

    Raises:
        ValidationError: If the range is inverted, or a record belongs to a
            different employee than ``employee_id``.
    """
    if period_end < period_start:
        raise ValidationError(
            f"Period end {period_end} is before period start {period_start}",
            field="period_end",
        )

    by_date: dict[date, AttendanceRecord] = {}
    for record in records:
        if employee_id is not None and record.employee_id != employee_id:
            raise ValidationError(
                f"Attendance record {record.id} belongs to {record.employee_id}, "
                f"not {employee_id}",
                field="employee_id",
            )
        if period_start <= record.date <= period_end:
            by_date[record.date] = record

    work_days = 0
    half_days = 0
    absent_days = 0
    total_hours = Decimal("0")
    total_overtime = Decimal("0")

    for record in by_date.values():
        if record.status is AttendanceStatus.ABSENT:
            absent_days += 1
            continue

        if record.status is AttendanceStatus.PRESENT:
            work_days += 1
        else:
            half_days += 1
        total_hours += record.work_hours
        total_overtime += record.overtime_hours

    return AttendanceSummary(
        work_days=work_days,
        half_days=half_days,
        absent_days=absent_days,
        total_work_hours=total_hours,
        total_overtime_hours=total_overtime,
    )
