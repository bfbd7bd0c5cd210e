"""Tests for the result facade and role checks."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio

from wage_ledger.auth import RoleAuthorizer, User, require_permission
from wage_ledger.errors import PermissionDeniedError
from wage_ledger.services.ledger_service import LedgerService
from wage_ledger.store import Collections

from conftest import PERIOD_END, PERIOD_START, make_settings


def ledger_for(store, settings, role):
    user = User(id=f"{role}-1", role=role) if role else None
    return LedgerService(store, RoleAuthorizer(user), settings)


class TestRoles:
    def test_hierarchy(self):
        assert RoleAuthorizer(User("a", "admin")).has_permission("manager")
        assert RoleAuthorizer(User("m", "manager")).has_permission("user")
        assert not RoleAuthorizer(User("u", "user")).has_permission("manager")
        assert not RoleAuthorizer(User("x", "guest")).has_permission("user")
        assert not RoleAuthorizer(None).has_permission("user")

    def test_require_permission(self):
        with pytest.raises(PermissionDeniedError) as exc_info:
            require_permission(RoleAuthorizer(User("u", "user")), "admin")
        assert exc_info.value.user_role == "user"
        assert require_permission(RoleAuthorizer(User("a", "admin")), "admin").id == "a"


class TestPermissions:
    async def test_user_can_read_but_not_write(self, store, settings, scenario_a):
        ledger = ledger_for(store, settings, "user")

        preview = await ledger.preview_payroll(scenario_a, PERIOD_START, PERIOD_END)
        commit = await ledger.commit_payroll(scenario_a, PERIOD_START, PERIOD_END)

        assert preview.success
        assert preview.value.net_salary == Decimal("2387.50")
        assert not commit.success
        assert commit.error_kind == "permission"
        assert store.count(Collections.SALARY_PAYMENTS) == 0

    async def test_manager_can_commit(self, store, settings, scenario_a):
        ledger = ledger_for(store, settings, "manager")
        result = await ledger.commit_payroll(scenario_a, PERIOD_START, PERIOD_END)
        assert result.success
        assert result.value.is_new

    async def test_no_user_is_denied_before_any_work(self, store, settings):
        ledger = ledger_for(store, settings, None)
        result = await ledger.preview_payroll("ghost", PERIOD_START, PERIOD_END)
        assert result.error_kind == "permission"
        assert "anonymous" in result.detail


class TestErrorKinds:
    """Expected failures come back as results, not exceptions."""

    async def test_not_found(self, admin_ledger):
        result = await admin_ledger.preview_payroll("ghost", PERIOD_START, PERIOD_END)
        assert not result.success
        assert result.value is None
        assert result.error_kind == "not_found"

    async def test_validation(self, admin_ledger, add_employee):
        await add_employee("emp-1")
        result = await admin_ledger.grant_employee_advance("emp-1", "-5")
        assert result.error_kind == "validation"

    async def test_advance_for_unknown_employee(self, store, admin_ledger):
        result = await admin_ledger.grant_employee_advance("ghost", "100")
        assert result.error_kind == "not_found"
        assert store.count(Collections.EMPLOYEE_ADVANCES) == 0

    async def test_bad_advance_method(self, admin_ledger, add_employee):
        await add_employee("emp-1")
        result = await admin_ledger.grant_employee_advance("emp-1", "100", payment_method="gold")
        assert result.error_kind == "validation"

    async def test_invalid_transition(self, admin_ledger, add_employee):
        await add_employee("emp-1")
        granted = await admin_ledger.grant_employee_advance("emp-1", "100", "2024-01-02")
        await admin_ledger.settle_advance(granted.value.id)

        again = await admin_ledger.settle_advance(granted.value.id)
        assert again.error_kind == "invalid_transition"

    async def test_conflict(self, admin_ledger, scenario_a):
        await admin_ledger.commit_payroll(scenario_a, PERIOD_START, PERIOD_END)
        overlap = await admin_ledger.commit_payroll(scenario_a, "2024-01-05", "2024-01-10")
        assert overlap.error_kind == "conflict"

    async def test_store_failure_is_persistence(self, settings):
        class BrokenStore:
            async def get(self, collection, record_id):
                raise ConnectionError("db down")

        ledger = LedgerService(BrokenStore(), RoleAuthorizer(User("a", "admin")), settings)
        result = await ledger.preview_payroll("emp-1", PERIOD_START, PERIOD_END)
        assert result.error_kind == "persistence"


class TestFacadeFlows:
    async def test_receivables_round(self, admin_ledger):
        invoice = await admin_ledger.create_invoice(
            "+91 98765 43210", [{"description": "Pipes", "quantity": "2", "price": "600"}]
        )
        await admin_ledger.grant_customer_advance("9876543210", "500")

        statement = await admin_ledger.customer_statement("09876543210")
        assert statement.value.balance == Decimal("-700.00")

        paid = await admin_ledger.mark_invoice_paid(invoice.value.id, "upi")
        assert paid.success
        assert (await admin_ledger.mark_invoice_paid(invoice.value.id)).error_kind == (
            "invalid_transition"
        )

    async def test_attendance_and_reports(self, admin_ledger, add_employee):
        await add_employee("emp-1")
        await add_employee("emp-2")

        marked = await admin_ledger.mark_all(["emp-1", "emp-2"], "2024-01-02")
        assert marked.success and marked.value.success

        counts = await admin_ledger.daily_attendance("2024-01-02")
        assert counts.value.present == 2

        paid = await admin_ledger.pay_all_present("2024-01-02")
        assert paid.value.succeeded == ["emp-1", "emp-2"]

        summary = await admin_ledger.employee_summary("emp-1", today="2024-01-02")
        assert summary.value.total_salary == Decimal("500.00")

        totals = await admin_ledger.salary_totals(group_by="month")
        assert totals.value[0].amount == Decimal("1000.00")

        history = await admin_ledger.employee_advances_history("emp-1")
        assert history.value == []


class TestRequestCache:
    """Reads through one facade are cached until that facade writes."""

    async def test_repeated_preview_is_served_from_cache(self, admin_ledger, scenario_a):
        first = await admin_ledger.preview_payroll(scenario_a, PERIOD_START, PERIOD_END)
        misses = admin_ledger.cache.misses

        second = await admin_ledger.preview_payroll(scenario_a, PERIOD_START, PERIOD_END)

        assert second.value.net_salary == first.value.net_salary == Decimal("2387.50")
        assert admin_ledger.cache.hits > 0
        assert admin_ledger.cache.misses == misses

    async def test_facade_writes_refresh_reads(self, admin_ledger, scenario_a):
        before = await admin_ledger.preview_payroll(scenario_a, PERIOD_START, PERIOD_END)
        await admin_ledger.mark_attendance(
            scenario_a, "2024-01-06", "present", check_in="09:00", check_out="17:00"
        )

        after = await admin_ledger.preview_payroll(scenario_a, PERIOD_START, PERIOD_END)

        assert after.value.work_days == before.value.work_days + 1


class TestBulkControls:
    @pytest_asyncio.fixture
    async def present_three(self, store, add_employee, attendance):
        for employee_id in ("emp-1", "emp-2", "emp-3"):
            await add_employee(employee_id)
            await attendance.mark_attendance(employee_id, date(2024, 1, 2), "present")
        return ["emp-1", "emp-2", "emp-3"]

    async def test_cancelled_bulk_pay_keeps_finished_items(
        self, store, present_three, monkeypatch
    ):
        ledger = LedgerService(
            store, RoleAuthorizer(User("a", "admin")), make_settings(batch_max_workers=1)
        )
        cancel = asyncio.Event()
        commit = ledger.commits.commit

        async def commit_then_cancel(*args, **kwargs):
            committed = await commit(*args, **kwargs)
            cancel.set()
            return committed

        monkeypatch.setattr(ledger.commits, "commit", commit_then_cancel)

        result = await ledger.bulk_pay(
            present_three, "2024-01-02", "2024-01-02", cancel_event=cancel
        )

        assert result.success
        assert result.value.succeeded == ["emp-1"]
        assert result.value.failed_with("cancelled") == ["emp-2", "emp-3"]
        assert store.count(Collections.SALARY_PAYMENTS) == 1

    async def test_bulk_pay_timeout_is_per_item(self, store, present_three, monkeypatch):
        ledger = LedgerService(store, RoleAuthorizer(User("a", "admin")), make_settings())

        async def stalled_commit(*args, **kwargs):
            await asyncio.sleep(5)

        monkeypatch.setattr(ledger.commits, "commit", stalled_commit)

        result = await ledger.bulk_pay(present_three, "2024-01-02", "2024-01-02", timeout=0.01)

        assert result.success
        assert result.value.failed_with("timeout") == present_three
        assert store.count(Collections.SALARY_PAYMENTS) == 0


class TestEmployeeFacade:
    async def test_created_employee_can_be_paid(self, admin_ledger):
        created = await admin_ledger.create_employee("Kiran", "650", phone="+91 98765 43210")
        assert created.success
        employee_id = created.value.id
        assert employee_id == "EMP0001"

        await admin_ledger.mark_attendance(employee_id, "2024-01-02", "present")
        preview = await admin_ledger.preview_payroll(employee_id, "2024-01-02", "2024-01-02")
        assert preview.value.net_salary == Decimal("650.00")

        raised = await admin_ledger.update_employee(employee_id, {"daily_rate": "700"})
        assert raised.success
        preview = await admin_ledger.preview_payroll(employee_id, "2024-01-02", "2024-01-02")
        assert preview.value.net_salary == Decimal("700.00")

    async def test_user_cannot_create(self, store, settings):
        ledger = ledger_for(store, settings, "user")
        result = await ledger.create_employee("Kiran", "650")
        assert result.error_kind == "permission"
        assert store.count(Collections.EMPLOYEES) == 0

    async def test_bad_rate_is_validation(self, admin_ledger):
        result = await admin_ledger.create_employee("Kiran", "0")
        assert result.error_kind == "validation"
