"""Result facade over the ledger services.

Every operation checks the caller's role before doing any work and returns
an OperationResult instead of raising for expected business conditions.
Anything that is not a LedgerError is a bug and still propagates.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, Generic, Iterable, Mapping, TypeVar

from wage_ledger.auth import READ_ROLE, WRITE_ROLE, Authorizer, Role, require_permission
from wage_ledger.calculators.engine import PayrollCalculation, PayrollCalculator
from wage_ledger.calculators.types import (
    AdvanceTransaction,
    AttendanceRecord,
    AttendanceStatus,
    Employee,
    Invoice,
    PaymentMethod,
    PaymentRecord,
    _enum,
)
from wage_ledger.config import Settings, get_settings
from wage_ledger.errors import LedgerError
from wage_ledger.services.advance_ledger import AdvanceLedger
from wage_ledger.services.attendance_service import AttendanceService, DailyAttendanceCounts
from wage_ledger.services.batch import BatchProcessor, BatchResult
from wage_ledger.services.commit_service import CommitResult, PayrollCommitService
from wage_ledger.services.employee_service import EmployeeService
from wage_ledger.services.locking_service import EntityLocks
from wage_ledger.services.receivables import CustomerStatement, ReceivablesLedger
from wage_ledger.services.summary_service import EmployeeSummary, PeriodTotal, SummaryService
from wage_ledger.store.base import Collections, GuardedStore, RecordStore
from wage_ledger.store.cache import ReadThroughCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a facade call.

    On failure ``value`` is None, ``error_kind`` is the LedgerError kind and
    ``detail`` is a message fit for display.
    """

    success: bool
    value: T | None = None
    error_kind: str | None = None
    detail: str | None = None

    @classmethod
    def ok(cls, value: T, detail: str | None = None) -> OperationResult[T]:
        return cls(success=True, value=value, detail=detail)

    @classmethod
    def failure(cls, error: LedgerError) -> OperationResult[T]:
        return cls(success=False, error_kind=error.kind, detail=error.message)


class LedgerService:
    """Entry point used by presentation code and the HTTP API.

    ``commit_locks`` and ``invoice_locks`` must be shared by every facade
    serving the same store, otherwise two facades could commit the same
    employee or pay the same invoice at once.

    Each facade reads through its own ReadThroughCache, so it is meant to
    serve one request or one batch run.
    """

    def __init__(
        self,
        store: RecordStore,
        authorizer: Authorizer,
        settings: Settings | None = None,
        commit_locks: EntityLocks | None = None,
        invoice_locks: EntityLocks | None = None,
    ):
        self.settings = settings or get_settings()
        self.cache = ReadThroughCache(store)
        self.store = GuardedStore(self.cache, timeout=self.settings.store_timeout_seconds)
        self.authorizer = authorizer

        self.employee_advances = AdvanceLedger(
            self.store,
            collection=Collections.EMPLOYEE_ADVANCES,
            max_amount=self.settings.max_advance_amount,
        )
        self.receivables = ReceivablesLedger(
            self.store,
            max_advance_amount=self.settings.max_advance_amount,
            locks=invoice_locks or EntityLocks(),
        )
        self.calculator = PayrollCalculator(
            self.store, settings=self.settings, advances=self.employee_advances
        )
        self.commits = PayrollCommitService(
            self.store, self.calculator, locks=commit_locks or EntityLocks()
        )
        self.employees = EmployeeService(self.store)
        self.attendance = AttendanceService(self.store)
        self.batch = BatchProcessor(
            attendance=self.attendance, commits=self.commits, settings=self.settings
        )
        self.summaries = SummaryService(self.store, advances=self.employee_advances)

    async def _run(
        self,
        required_role: Role,
        operation: str,
        call: Callable[[], Awaitable[T]],
    ) -> OperationResult[T]:
        try:
            require_permission(self.authorizer, required_role)
            value = await call()
        except LedgerError as exc:
            logger.info("%s failed (%s): %s", operation, exc.kind, exc.message)
            return OperationResult.failure(exc)
        return OperationResult.ok(value)

    # === Payroll ===

    async def preview_payroll(
        self, employee_id: str, period_start: date | str, period_end: date | str
    ) -> OperationResult[PayrollCalculation]:
        return await self._run(
            READ_ROLE,
            "preview_payroll",
            lambda: self.calculator.calculate(employee_id, period_start, period_end),
        )

    async def commit_payroll(
        self,
        employee_id: str,
        period_start: date | str,
        period_end: date | str,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        payment_date: date | str | None = None,
    ) -> OperationResult[CommitResult]:
        return await self._run(
            WRITE_ROLE,
            "commit_payroll",
            lambda: self.commits.commit(
                employee_id, period_start, period_end, payment_method, payment_date
            ),
        )

    async def bulk_pay(
        self,
        employee_ids: Iterable[str],
        period_start: date | str,
        period_end: date | str,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        payment_date: date | str | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> OperationResult[BatchResult]:
        return await self._run(
            WRITE_ROLE,
            "bulk_pay",
            lambda: self.batch.pay_employees(
                employee_ids,
                period_start,
                period_end,
                payment_method,
                payment_date,
                timeout=timeout,
                cancel_event=cancel_event,
            ),
        )

    async def pay_all_present(
        self,
        attendance_date: date | str,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> OperationResult[BatchResult]:
        return await self._run(
            WRITE_ROLE,
            "pay_all_present",
            lambda: self.batch.pay_all_present(
                attendance_date, payment_method, timeout=timeout, cancel_event=cancel_event
            ),
        )

    # === Employees ===

    async def create_employee(
        self,
        name: str,
        daily_rate: Any,
        phone: str | None = None,
        email: str | None = None,
        role: str | None = None,
        employee_type: str = "employee",
        join_date: date | str | None = None,
        employee_id: str | None = None,
    ) -> OperationResult[Employee]:
        return await self._run(
            WRITE_ROLE,
            "create_employee",
            lambda: self.employees.create_employee(
                name,
                daily_rate,
                phone=phone,
                email=email,
                role=role,
                employee_type=employee_type,
                join_date=join_date,
                employee_id=employee_id,
            ),
        )

    async def update_employee(
        self, employee_id: str, changes: Mapping[str, Any]
    ) -> OperationResult[Employee]:
        return await self._run(
            WRITE_ROLE,
            "update_employee",
            lambda: self.employees.update_employee(employee_id, changes),
        )

    async def set_employee_status(self, employee_id: str, status: str) -> OperationResult[Employee]:
        return await self._run(
            WRITE_ROLE,
            "set_employee_status",
            lambda: self.employees.set_status(employee_id, status),
        )

    async def get_employee(self, employee_id: str) -> OperationResult[Employee]:
        return await self._run(
            READ_ROLE, "get_employee", lambda: self.employees.get_employee(employee_id)
        )

    async def list_employees(self, status: str | None = None) -> OperationResult[list[Employee]]:
        return await self._run(
            READ_ROLE, "list_employees", lambda: self.employees.list_employees(status)
        )

    # === Attendance ===

    async def mark_attendance(
        self,
        employee_id: str,
        attendance_date: date | str,
        status: AttendanceStatus | str = AttendanceStatus.PRESENT,
        check_in: str | None = None,
        check_out: str | None = None,
        overtime_hours: Any = None,
        notes: str | None = None,
    ) -> OperationResult[AttendanceRecord]:
        return await self._run(
            WRITE_ROLE,
            "mark_attendance",
            lambda: self.attendance.mark_attendance(
                employee_id,
                attendance_date,
                status,
                check_in=check_in,
                check_out=check_out,
                overtime_hours=overtime_hours,
                notes=notes,
            ),
        )

    async def mark_all(
        self,
        employee_ids: Iterable[str],
        attendance_date: date | str,
        status: AttendanceStatus | str = AttendanceStatus.PRESENT,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> OperationResult[BatchResult]:
        return await self._run(
            WRITE_ROLE,
            "mark_all",
            lambda: self.batch.mark_all(
                employee_ids,
                attendance_date,
                status,
                timeout=timeout,
                cancel_event=cancel_event,
            ),
        )

    async def save_bulk_attendance(
        self,
        entries: Iterable[Mapping[str, Any]],
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> OperationResult[BatchResult]:
        return await self._run(
            WRITE_ROLE,
            "save_bulk_attendance",
            lambda: self.batch.save_bulk_attendance(
                entries, timeout=timeout, cancel_event=cancel_event
            ),
        )

    async def delete_attendance(self, record_id: str) -> OperationResult[None]:
        return await self._run(
            WRITE_ROLE, "delete_attendance", lambda: self.attendance.delete_attendance(record_id)
        )

    async def daily_attendance(
        self, attendance_date: date | str
    ) -> OperationResult[DailyAttendanceCounts]:
        return await self._run(
            READ_ROLE, "daily_attendance", lambda: self.attendance.daily_counts(attendance_date)
        )

    # === Employee advances ===

    async def grant_employee_advance(
        self,
        employee_id: str,
        amount: Any,
        advance_date: date | str | None = None,
        notes: str | None = None,
        payment_method: PaymentMethod | str | None = None,
    ) -> OperationResult[AdvanceTransaction]:
        async def grant() -> AdvanceTransaction:
            await self.calculator.get_employee(employee_id)
            method = None
            if payment_method:
                method = _enum(PaymentMethod, payment_method, "payment_method").value
            return await self.employee_advances.grant_advance(
                employee_id,
                amount,
                advance_date or date.today(),
                notes=notes,
                payment_method=method,
            )

        return await self._run(WRITE_ROLE, "grant_employee_advance", grant)

    async def settle_advance(self, transaction_id: str) -> OperationResult[AdvanceTransaction]:
        return await self._run(
            WRITE_ROLE, "settle_advance", lambda: self.employee_advances.settle(transaction_id)
        )

    async def employee_advances_history(
        self, employee_id: str
    ) -> OperationResult[list[AdvanceTransaction]]:
        return await self._run(
            READ_ROLE,
            "employee_advances_history",
            lambda: self.employee_advances.history(employee_id),
        )

    # === Receivables ===

    async def create_invoice(
        self,
        customer_phone: str,
        items: Iterable[Mapping[str, Any]],
        tax_rate: Any = "0",
        invoice_date: date | str | None = None,
        invoice_number: str | None = None,
    ) -> OperationResult[Invoice]:
        return await self._run(
            WRITE_ROLE,
            "create_invoice",
            lambda: self.receivables.create_invoice(
                customer_phone, items, tax_rate, invoice_date, invoice_number
            ),
        )

    async def mark_invoice_paid(
        self,
        invoice_id: str,
        method: PaymentMethod | str = PaymentMethod.CASH,
        paid_on: date | str | None = None,
    ) -> OperationResult[PaymentRecord]:
        return await self._run(
            WRITE_ROLE,
            "mark_invoice_paid",
            lambda: self.receivables.mark_paid(invoice_id, method, paid_on),
        )

    async def grant_customer_advance(
        self,
        customer_phone: str,
        amount: Any,
        advance_date: date | str | None = None,
        method: PaymentMethod | str = PaymentMethod.CASH,
        notes: str | None = None,
    ) -> OperationResult[AdvanceTransaction]:
        return await self._run(
            WRITE_ROLE,
            "grant_customer_advance",
            lambda: self.receivables.grant_advance(
                customer_phone, amount, advance_date, method, notes
            ),
        )

    async def customer_statement(self, customer_phone: str) -> OperationResult[CustomerStatement]:
        return await self._run(
            READ_ROLE,
            "customer_statement",
            lambda: self.receivables.customer_statement(customer_phone),
        )

    # === Reports ===

    async def employee_summary(
        self, employee_id: str, today: date | str | None = None
    ) -> OperationResult[EmployeeSummary]:
        return await self._run(
            READ_ROLE,
            "employee_summary",
            lambda: self.summaries.employee_summary(employee_id, today),
        )

    async def salary_totals(
        self, employee_id: str | None = None, group_by: str = "week"
    ) -> OperationResult[list[PeriodTotal]]:
        return await self._run(
            READ_ROLE,
            "salary_totals",
            lambda: self.summaries.salary_totals_by_period(employee_id, group_by),
        )
