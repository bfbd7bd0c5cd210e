"""Idempotent payroll commit for one employee and one pay period."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date

from wage_ledger.calculators.engine import PayrollCalculation, PayrollCalculator
from wage_ledger.calculators.periods import as_date, period_markers
from wage_ledger.calculators.types import (
    PaymentMethod,
    SalaryPayment,
    SalaryPaymentStatus,
    SalaryTransaction,
    _enum,
)
from wage_ledger.errors import ConcurrencyConflictError
from wage_ledger.services.advance_ledger import AdvanceLedger
from wage_ledger.services.locking_service import EntityLocks
from wage_ledger.store.base import Collections, RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommitResult:
    """Outcome of a commit. ``is_new`` is False when the period was already paid."""

    payment: SalaryPayment
    is_new: bool
    calculation: PayrollCalculation | None = None

    @property
    def rate_defaulted(self) -> bool:
        return self.payment.rate_defaulted


class PayrollCommitService:
    """Persists a payroll calculation as a salary payment.

    Key invariants:
    1. One salary payment per (employee, exact period); a retry returns it
    2. Periods of one employee never overlap
    3. Commits for the same employee are serialized; a second one in flight
       fails with ConcurrencyConflictError
    4. The advances swept are exactly those the calculation deducted

    Write order: the payment is stored ``pending`` first, then its advances
    are swept and its salary transaction appended, then it is promoted to
    ``paid``. A commit interrupted anywhere after the first write leaves a
    pending payment, and the next commit for that period finishes it with
    the deductions it was calculated with.
    """

    def __init__(
        self,
        store: RecordStore,
        calculator: PayrollCalculator,
        locks: EntityLocks | None = None,
    ):
        self.store = store
        self.calculator = calculator
        self.advances: AdvanceLedger = calculator.advances
        self.locks = locks or EntityLocks()

    async def commit(
        self,
        employee_id: str,
        period_start: date | str,
        period_end: date | str,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
        payment_date: date | str | None = None,
    ) -> CommitResult:
        """Calculate and commit pay for one employee.

        Raises:
            ConcurrencyConflictError: Another commit for the employee is in
                flight, a payment exists for an overlapping period, or the
                advances changed under an unfinished commit.
            ValidationError, NotFoundError: From the calculation.
        """
        start = as_date(period_start)
        end = as_date(period_end)
        method = _enum(PaymentMethod, payment_method, "payment_method")
        paid_on = as_date(payment_date) if payment_date else date.today()

        async with self.locks.try_hold(employee_id, "payroll commit"):
            existing = await self._find_existing(employee_id, start, end)
            if existing is not None and existing.is_paid:
                logger.info(
                    "Salary for %s %s..%s already committed as %s",
                    employee_id,
                    start,
                    end,
                    existing.id,
                )
                return CommitResult(payment=existing, is_new=False)

            calculation = None
            if existing is not None:
                logger.warning(
                    "Resuming unfinished salary payment %s for %s %s..%s",
                    existing.id,
                    employee_id,
                    start,
                    end,
                )
                payment = existing
            else:
                calculation = await self.calculator.calculate(employee_id, start, end)
                payment = await self._write_pending(calculation, method.value, paid_on)

            payment = await self._complete(payment)

        logger.info(
            "Committed salary %s for %s: net %s (calculation %s)",
            payment.id,
            employee_id,
            payment.net_salary,
            payment.calculation_id,
        )
        return CommitResult(payment=payment, is_new=True, calculation=calculation)

    async def payments_for(self, employee_id: str) -> list[SalaryPayment]:
        records = await self.store.query(Collections.SALARY_PAYMENTS, {"employee_id": employee_id})
        payments = [SalaryPayment.from_record(r) for r in records]
        return sorted(payments, key=lambda p: (p.pay_period_start, p.id or ""))

    async def _find_existing(
        self, employee_id: str, start: date, end: date
    ) -> SalaryPayment | None:
        for payment in await self.payments_for(employee_id):
            if payment.pay_period_start == start and payment.pay_period_end == end:
                return payment
            if payment.overlaps(start, end):
                raise ConcurrencyConflictError(
                    employee_id,
                    f"period {start}..{end} overlaps committed payment {payment.id} "
                    f"({payment.pay_period_start}..{payment.pay_period_end})",
                )
        return None

    async def _write_pending(
        self, calculation: PayrollCalculation, method: str, paid_on: date
    ) -> SalaryPayment:
        payment = SalaryPayment(
            employee_id=calculation.employee_id,
            pay_period_start=calculation.period_start,
            pay_period_end=calculation.period_end,
            payment_date=paid_on,
            payment_method=method,
            basic_salary=calculation.basic_salary,
            overtime_amount=calculation.overtime_amount,
            advance_deductions=calculation.advance_deductions,
            net_salary=calculation.net_salary,
            work_days=calculation.work_days,
            total_work_hours=calculation.total_work_hours,
            overtime_hours=calculation.overtime_hours,
            daily_rate=calculation.daily_rate,
            rate_defaulted=calculation.rate_defaulted,
            calculation_id=str(calculation.calculation_id),
            advance_ids=calculation.advance_ids,
            status=SalaryPaymentStatus.PENDING.value,
        )
        payment_id = await self.store.create(Collections.SALARY_PAYMENTS, payment.to_record())
        return replace(payment, id=payment_id)

    async def _complete(self, payment: SalaryPayment) -> SalaryPayment:
        """Sweep advances, append the transaction and promote a pending payment.

        Every step can be repeated: the sweep treats advances already taken
        by this payment's calculation as done, and the transaction is only
        appended when none exists for the payment yet.
        """
        assert payment.id is not None
        if payment.advance_ids:
            try:
                await self.advances.deduct_for_payroll(
                    payment.employee_id,
                    payment.advance_deductions,
                    payroll_run_id=str(payment.calculation_id),
                    advance_ids=payment.advance_ids,
                    deducted_on=payment.payment_date,
                )
            except ConcurrencyConflictError:
                # Stale calculation: drop it so the next commit recalculates
                logger.warning(
                    "Advances changed under salary payment %s; discarding it", payment.id
                )
                await self.store.delete(Collections.SALARY_PAYMENTS, payment.id)
                raise

        transactions = await self.store.query(
            Collections.SALARY_RECORDS, {"salary_payment_id": payment.id}
        )
        if not transactions:
            markers = period_markers(payment.payment_date)
            transaction = SalaryTransaction(
                employee_id=payment.employee_id,
                amount=payment.net_salary,
                date=payment.payment_date,
                week_number=markers.week_number,
                month_number=markers.month_number,
                year=markers.year,
                payment_method=payment.payment_method,
                salary_payment_id=payment.id,
            )
            await self.store.create(Collections.SALARY_RECORDS, transaction.to_record())

        await self.store.update(
            Collections.SALARY_PAYMENTS,
            payment.id,
            {"status": SalaryPaymentStatus.PAID.value},
            expected={"status": SalaryPaymentStatus.PENDING.value},
        )
        return replace(payment, status=SalaryPaymentStatus.PAID.value)
