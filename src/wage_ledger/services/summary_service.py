"""Read-only employee summaries and salary totals for reporting."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from wage_ledger.calculators.periods import as_date
from wage_ledger.calculators.types import AttendanceRecord, AttendanceStatus, SalaryTransaction
from wage_ledger.errors import NotFoundError, ValidationError
from wage_ledger.services.advance_ledger import AdvanceLedger
from wage_ledger.store.base import Collections, RecordStore

NOT_MARKED = "not_marked"
GROUPINGS = ("week", "month")


@dataclass(frozen=True)
class EmployeeSummary:
    employee_id: str
    total_salary: Decimal
    pending_advances: Decimal
    total_work_days: int
    today_status: str
    today_work_hours: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "total_salary": str(self.total_salary),
            "pending_advances": str(self.pending_advances),
            "total_work_days": self.total_work_days,
            "today_status": self.today_status,
            "today_work_hours": str(self.today_work_hours),
        }


@dataclass(frozen=True)
class PeriodTotal:
    """Salary paid within one reporting bucket."""

    year: int
    number: int
    amount: Decimal
    payments: int

    @property
    def label(self) -> str:
        return f"{self.year}-{self.number:02d}"


class SummaryService:
    def __init__(self, store: RecordStore, advances: AdvanceLedger | None = None):
        self.store = store
        self.advances = advances or AdvanceLedger(store, Collections.EMPLOYEE_ADVANCES)

    async def employee_summary(
        self, employee_id: str, today: date | str | None = None
    ) -> EmployeeSummary:
        """Salary paid to date, pending advances, days worked and today's status."""
        if await self.store.get(Collections.EMPLOYEES, employee_id) is None:
            raise NotFoundError("Employee", employee_id)
        day = as_date(today) if today else date.today()

        salaries = await self._salary_transactions(employee_id)
        attendance = [
            AttendanceRecord.from_record(r)
            for r in await self.store.query(Collections.ATTENDANCE, {"employee_id": employee_id})
        ]
        todays = [r for r in attendance if r.date == day]
        present_dates = {r.date for r in attendance if r.status is AttendanceStatus.PRESENT}

        return EmployeeSummary(
            employee_id=employee_id,
            total_salary=sum((s.amount for s in salaries), Decimal("0")),
            pending_advances=await self.advances.pending_total(employee_id),
            total_work_days=len(present_dates),
            today_status=todays[-1].status.value if todays else NOT_MARKED,
            today_work_hours=todays[-1].work_hours if todays else Decimal("0"),
        )

    async def salary_totals_by_period(
        self,
        employee_id: str | None = None,
        group_by: str = "week",
    ) -> list[PeriodTotal]:
        """Salary totals bucketed by ISO week or by month, oldest first.

        Buckets use the markers stored with each salary transaction.
        """
        if group_by not in GROUPINGS:
            raise ValidationError(
                f"group_by must be one of {', '.join(GROUPINGS)}", field="group_by"
            )
        amounts: dict[tuple[int, int], Decimal] = defaultdict(Decimal)
        counts: dict[tuple[int, int], int] = defaultdict(int)

        for salary in await self._salary_transactions(employee_id):
            number = salary.week_number if group_by == "week" else salary.month_number
            # ISO week 52/53 can fall in early January of the next calendar year
            year = salary.date.isocalendar()[0] if group_by == "week" else salary.year
            amounts[(year, number)] += salary.amount
            counts[(year, number)] += 1

        return [
            PeriodTotal(year, number, amounts[(year, number)], counts[(year, number)])
            for year, number in sorted(amounts)
        ]

    async def _salary_transactions(self, employee_id: str | None) -> list[SalaryTransaction]:
        filters = {"employee_id": employee_id} if employee_id else None
        records = await self.store.query(Collections.SALARY_RECORDS, filters)
        return [SalaryTransaction.from_record(r) for r in records]
