"""Advance ledger - cash advanced to an entity and its settlement.

Provides:
- Granting advances (always created pending)
- Direct settlement (pending → paid)
- Payroll sweep (pending → deducted), guarded by an optimistic total check
- Pending totals and balances, always recomputed from the records
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Callable

from wage_ledger.calculators.periods import as_date
from wage_ledger.calculators.types import (
    AdvanceStatus,
    AdvanceTransaction,
    to_positive_money,
)
from wage_ledger.errors import ConcurrencyConflictError, NotFoundError, ValidationError
from wage_ledger.services.state_machine import AdvanceStateMachine
from wage_ledger.store.base import Collections, RecordStore

logger = logging.getLogger(__name__)


def _identity(entity_id: str) -> str:
    if not entity_id:
        raise ValidationError("entity_id is required", field="entity_id")
    return str(entity_id)


class AdvanceLedger:
    """Advances for one kind of entity (employees or customers).

    Notes:
    - ``collection`` selects where advances live; ``key`` normalizes entity
      ids at every read and write.
    - Status is monotonic. Settled and deducted advances stay in history and
      still count toward ``total_advanced``.
    """

    def __init__(
        self,
        store: RecordStore,
        collection: str = Collections.EMPLOYEE_ADVANCES,
        key: Callable[[str], str] = _identity,
        max_amount: Decimal | None = None,
    ):
        self.store = store
        self.collection = collection
        self.key = key
        self.max_amount = max_amount

    # === Reads ===

    async def history(self, entity_id: str) -> list[AdvanceTransaction]:
        """Every advance for the entity, oldest first."""
        records = await self.store.query(self.collection, {"entity_id": self.key(entity_id)})
        advances = [AdvanceTransaction.from_record(r) for r in records]
        return sorted(advances, key=lambda a: (a.date, a.id or ""))

    async def pending(
        self,
        entity_id: str,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> list[AdvanceTransaction]:
        """Pending advances, optionally restricted to an inclusive date range."""
        return [
            advance
            for advance in await self.history(entity_id)
            if advance.is_pending
            and (period_start is None or advance.date >= period_start)
            and (period_end is None or advance.date <= period_end)
        ]

    async def pending_total(
        self,
        entity_id: str,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> Decimal:
        advances = await self.pending(entity_id, period_start, period_end)
        return sum((a.amount for a in advances), Decimal("0"))

    async def total_advanced(self, entity_id: str) -> Decimal:
        """Sum of every advance regardless of status."""
        return sum((a.amount for a in await self.history(entity_id)), Decimal("0"))

    async def balance(self, entity_id: str) -> Decimal:
        """Signed balance. With no invoices on this side it is the total advanced."""
        return await self.total_advanced(entity_id)

    async def get(self, transaction_id: str) -> AdvanceTransaction:
        record = await self.store.get(self.collection, transaction_id)
        if record is None:
            raise NotFoundError("Advance", transaction_id)
        return AdvanceTransaction.from_record(record)

    # === Mutations ===

    async def grant_advance(
        self,
        entity_id: str,
        amount: Any,
        advance_date: date | str,
        notes: str | None = None,
        payment_method: str | None = None,
    ) -> AdvanceTransaction:
        """Record a new pending advance.

        Raises:
            ValidationError: If the amount is not positive or exceeds the
                configured maximum.
        """
        value = to_positive_money(amount)
        if self.max_amount is not None and value > self.max_amount:
            raise ValidationError(
                f"Advance amount {value} exceeds maximum {self.max_amount}",
                field="amount",
            )

        advance = AdvanceTransaction(
            entity_id=self.key(entity_id),
            amount=value,
            date=as_date(advance_date),
            status=AdvanceStatus.PENDING,
            notes=notes,
            payment_method=payment_method,
        )
        advance_id = await self.store.create(self.collection, advance.to_record())
        logger.info("Granted advance %s of %s to %s", advance_id, value, advance.entity_id)
        return AdvanceTransaction.from_record({**advance.to_record(), "id": advance_id})

    async def settle(
        self, transaction_id: str, settled_on: date | None = None
    ) -> AdvanceTransaction:
        """Mark a pending advance as paid directly.

        Raises:
            NotFoundError: Unknown advance id.
            InvalidTransitionError: The advance is not pending.
        """
        advance = await self.get(transaction_id)
        AdvanceStateMachine.validate_transition(advance.status, AdvanceStatus.PAID)

        patch = {
            "status": AdvanceStatus.PAID.value,
            "settled_on": (settled_on or date.today()).isoformat(),
        }
        await self.store.update(
            self.collection,
            transaction_id,
            patch,
            expected={"status": AdvanceStatus.PENDING.value},
        )
        logger.info("Settled advance %s for %s", transaction_id, advance.entity_id)
        return AdvanceTransaction.from_record(
            {**advance.to_record(), **patch, "id": transaction_id}
        )

    async def deduct_for_payroll(
        self,
        entity_id: str,
        amount: Decimal,
        payroll_run_id: str,
        advance_ids: list[str] | tuple[str, ...] | None = None,
        deducted_on: date | None = None,
    ) -> list[AdvanceTransaction]:
        """Sweep pending advances to ``deducted`` for a payroll run.

        With ``advance_ids`` only those advances are swept; otherwise every
        pending advance for the entity is. ``amount`` is the total the caller
        computed. It is compared with the total re-read here before anything
        is written, so two runs racing over the same advances cannot both
        deduct them.

        Advances already deducted by the same ``payroll_run_id`` are treated
        as done, which makes a retried sweep safe.

        Raises:
            ConcurrencyConflictError: The advances changed since the caller
                computed ``amount``.
        """
        key = self.key(entity_id)
        history = {a.id: a for a in await self.history(key)}

        if advance_ids is None:
            targets = [a for a in history.values() if a.is_pending]
        else:
            targets = []
            for advance_id in advance_ids:
                advance = history.get(advance_id)
                if advance is None:
                    raise ConcurrencyConflictError(
                        key, f"advance {advance_id} no longer belongs to this entity"
                    )
                already_swept = (
                    advance.status is AdvanceStatus.DEDUCTED
                    and advance.payroll_run_id == payroll_run_id
                )
                if not advance.is_pending and not already_swept:
                    raise ConcurrencyConflictError(
                        key, f"advance {advance_id} is already {advance.status.value}"
                    )
                targets.append(advance)

        total = sum((a.amount for a in targets), Decimal("0"))
        if total != amount:
            raise ConcurrencyConflictError(
                key, f"pending advances total {total}, expected {amount}"
            )

        swept_on = (deducted_on or date.today()).isoformat()
        swept: list[AdvanceTransaction] = []
        for advance in targets:
            if advance.is_pending:
                AdvanceStateMachine.validate_transition(advance.status, AdvanceStatus.DEDUCTED)
                patch = {
                    "status": AdvanceStatus.DEDUCTED.value,
                    "payroll_run_id": payroll_run_id,
                    "settled_on": swept_on,
                }
                await self.store.update(
                    self.collection,
                    advance.id,
                    patch,
                    expected={"status": AdvanceStatus.PENDING.value},
                )
                advance = AdvanceTransaction.from_record(
                    {**advance.to_record(), **patch, "id": advance.id}
                )
            swept.append(advance)

        logger.info(
            "Swept %d advance(s) totalling %s for %s in run %s",
            len(swept),
            total,
            key,
            payroll_run_id,
        )
        return swept
