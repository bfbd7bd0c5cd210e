"""Tests for employee summaries and salary totals."""

from datetime import date
from decimal import Decimal

import pytest

from wage_ledger.errors import NotFoundError, ValidationError
from wage_ledger.services.summary_service import NOT_MARKED, SummaryService

from conftest import PERIOD_END, PERIOD_START

pytestmark = pytest.mark.asyncio


@pytest.fixture
def summaries(store, advances):
    return SummaryService(store, advances)


class TestEmployeeSummary:
    async def test_after_commit(self, summaries, commits, advances, scenario_a):
        await commits.commit(scenario_a, PERIOD_START, PERIOD_END, payment_date=date(2024, 1, 8))
        await advances.grant_advance(scenario_a, "150", "2024-01-09")

        summary = await summaries.employee_summary(scenario_a, today=date(2024, 1, 3))

        assert summary.total_salary == Decimal("2387.50")
        assert summary.pending_advances == Decimal("150.00")
        assert summary.total_work_days == 5
        assert summary.today_status == "present"
        assert summary.today_work_hours == Decimal("9.00")
        assert summary.to_dict()["total_salary"] == "2387.50"

    async def test_not_marked_today(self, summaries, add_employee):
        await add_employee("emp-1")
        summary = await summaries.employee_summary("emp-1", today="2024-01-02")

        assert summary.today_status == NOT_MARKED
        assert summary.today_work_hours == Decimal("0")
        assert summary.total_salary == Decimal("0")

    async def test_unknown_employee(self, summaries):
        with pytest.raises(NotFoundError):
            await summaries.employee_summary("ghost")


class TestSalaryTotals:
    async def _pay(self, commits, attendance, employee_id, day):
        await attendance.mark_attendance(employee_id, day, "present", "09:00", "18:00")
        await commits.commit(employee_id, day, day, payment_date=day)

    async def test_grouped_by_week_and_month(self, summaries, commits, attendance, add_employee):
        await add_employee("emp-1", daily_rate="100")
        for day in (date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1)):
            await self._pay(commits, attendance, "emp-1", day)

        weekly = await summaries.salary_totals_by_period("emp-1", group_by="week")
        monthly = await summaries.salary_totals_by_period("emp-1", group_by="month")

        assert [(t.label, t.amount, t.payments) for t in weekly] == [
            ("2024-05", Decimal("300.00"), 3)
        ]
        assert [(t.label, t.amount) for t in monthly] == [
            ("2024-01", Decimal("200.00")),
            ("2024-02", Decimal("100.00")),
        ]

    async def test_week_bucket_crosses_new_year(
        self, summaries, commits, attendance, add_employee
    ):
        """2024-12-30 belongs to ISO week 1 of 2025."""
        await add_employee("emp-1", daily_rate="100")
        await self._pay(commits, attendance, "emp-1", date(2024, 12, 30))

        [bucket] = await summaries.salary_totals_by_period(group_by="week")
        assert (bucket.year, bucket.number) == (2025, 1)

    async def test_all_employees(self, summaries, commits, attendance, add_employee):
        await add_employee("emp-1", daily_rate="100")
        await add_employee("emp-2", daily_rate="250")
        await self._pay(commits, attendance, "emp-1", date(2024, 3, 4))
        await self._pay(commits, attendance, "emp-2", date(2024, 3, 5))

        [march] = await summaries.salary_totals_by_period(group_by="month")
        assert march.amount == Decimal("350.00")
        assert march.payments == 2

    async def test_unknown_grouping(self, summaries):
        with pytest.raises(ValidationError):
            await summaries.salary_totals_by_period(group_by="fortnight")
