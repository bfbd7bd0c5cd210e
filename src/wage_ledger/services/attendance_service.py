"""Daily attendance entry: one record per employee per date."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from wage_ledger.calculators.periods import as_date
from wage_ledger.calculators.types import AttendanceRecord, AttendanceStatus, Employee, _enum
from wage_ledger.errors import NotFoundError, ValidationError
from wage_ledger.services.locking_service import EntityLocks
from wage_ledger.store.base import Collections, RecordStore

logger = logging.getLogger(__name__)

DEFAULT_CHECK_IN = "09:00"
DEFAULT_CHECK_OUT = "18:00"
HALF_DAY_CHECK_OUT = "13:00"


@dataclass(frozen=True)
class DailyAttendanceCounts:
    """Head count by status for one date across active employees."""

    date: date
    total_employees: int
    present: int = 0
    absent: int = 0
    half_day: int = 0

    @property
    def not_marked(self) -> int:
        return max(self.total_employees - (self.present + self.absent + self.half_day), 0)


def default_times(status: AttendanceStatus) -> tuple[str | None, str | None]:
    """Shift times assumed when none are entered."""
    if status is AttendanceStatus.ABSENT:
        return None, None
    if status is AttendanceStatus.HALF_DAY:
        return DEFAULT_CHECK_IN, HALF_DAY_CHECK_OUT
    return DEFAULT_CHECK_IN, DEFAULT_CHECK_OUT


class AttendanceService:
    """Marks, lists and removes attendance records.

    Marking the same (employee, date) twice updates the existing record.
    Marks for one pair are serialized so concurrent callers cannot both
    create a record.
    """

    def __init__(self, store: RecordStore, locks: EntityLocks | None = None):
        self.store = store
        self.locks = locks or EntityLocks()

    async def mark_attendance(
        self,
        employee_id: str,
        attendance_date: date | str,
        status: AttendanceStatus | str = AttendanceStatus.PRESENT,
        check_in: str | None = None,
        check_out: str | None = None,
        overtime_hours: Any = None,
        notes: str | None = None,
        use_default_times: bool = False,
    ) -> AttendanceRecord:
        """Create or update the record for (employee, date).

        Raises:
            ValidationError: Unknown status, bad date or out-of-range hours.
            NotFoundError: The employee does not exist.
        """
        status = _enum(AttendanceStatus, status, "status")
        day = as_date(attendance_date)
        if use_default_times and not (check_in or check_out):
            check_in, check_out = default_times(status)

        record = AttendanceRecord.build(
            employee_id=employee_id,
            date=day,
            status=status,
            check_in=check_in,
            check_out=check_out,
            overtime_hours=overtime_hours,
            notes=notes,
        )
        await self._require_employee(record.employee_id)

        async with self.locks.hold(f"{record.employee_id}:{day.isoformat()}"):
            existing = await self.get_attendance(record.employee_id, day)
            if existing is not None:
                assert existing.id is not None
                await self.store.update(Collections.ATTENDANCE, existing.id, record.to_record())
                logger.debug("Updated attendance %s for %s on %s", existing.id, employee_id, day)
                record_id = existing.id
            else:
                record_id = await self.store.create(Collections.ATTENDANCE, record.to_record())
                logger.debug("Created attendance %s for %s on %s", record_id, employee_id, day)

        return AttendanceRecord.from_record({**record.to_record(), "id": record_id})

    async def get_attendance(
        self, employee_id: str, attendance_date: date | str
    ) -> AttendanceRecord | None:
        records = await self.store.query(
            Collections.ATTENDANCE,
            {"employee_id": employee_id, "date": as_date(attendance_date).isoformat()},
        )
        if not records:
            return None
        if len(records) > 1:
            logger.warning(
                "%d attendance records for %s on %s; using the latest",
                len(records),
                employee_id,
                attendance_date,
            )
        return AttendanceRecord.from_record(records[-1])

    async def list_attendance(
        self,
        employee_id: str | None = None,
        period_start: date | str | None = None,
        period_end: date | str | None = None,
        status: AttendanceStatus | str | None = None,
    ) -> list[AttendanceRecord]:
        filters: dict[str, Any] = {}
        if employee_id:
            filters["employee_id"] = employee_id
        if status:
            filters["status"] = _enum(AttendanceStatus, status, "status").value
        start = as_date(period_start) if period_start else None
        end = as_date(period_end) if period_end else None
        if start and end and end < start:
            raise ValidationError(
                f"Period end {end} is before period start {start}", field="period_end"
            )

        records = [
            AttendanceRecord.from_record(r)
            for r in await self.store.query(Collections.ATTENDANCE, filters)
        ]
        return sorted(
            (
                r
                for r in records
                if (start is None or r.date >= start) and (end is None or r.date <= end)
            ),
            key=lambda r: (r.date, r.employee_id),
        )

    async def delete_attendance(self, record_id: str) -> None:
        """Remove one record. Payroll already committed is not revisited."""
        await self.store.delete(Collections.ATTENDANCE, record_id)
        logger.info("Deleted attendance %s", record_id)

    async def daily_counts(self, attendance_date: date | str) -> DailyAttendanceCounts:
        day = as_date(attendance_date)
        employees = await self.active_employees()
        active_ids = {e.id for e in employees}
        marked = {
            r.employee_id: r
            for r in await self.list_attendance(period_start=day, period_end=day)
            if r.employee_id in active_ids
        }
        statuses = [r.status for r in marked.values()]
        return DailyAttendanceCounts(
            date=day,
            total_employees=len(employees),
            present=statuses.count(AttendanceStatus.PRESENT),
            absent=statuses.count(AttendanceStatus.ABSENT),
            half_day=statuses.count(AttendanceStatus.HALF_DAY),
        )

    async def active_employees(self) -> list[Employee]:
        records = await self.store.query(Collections.EMPLOYEES)
        employees = [Employee.from_record(r) for r in records]
        return [e for e in employees if e.status == "active"]

    async def present_employee_ids(self, attendance_date: date | str) -> list[str]:
        """Employees marked present on a date."""
        day = as_date(attendance_date)
        records = await self.list_attendance(
            period_start=day, period_end=day, status=AttendanceStatus.PRESENT
        )
        return sorted({r.employee_id for r in records})

    async def _require_employee(self, employee_id: str) -> None:
        if await self.store.get(Collections.EMPLOYEES, employee_id) is None:
            raise NotFoundError("Employee", employee_id)
