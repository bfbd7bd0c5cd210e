"""Customer receivables - invoices, customer advances and the running balance.

The balance is never stored. It is recomputed on every read as::

    balance = Σ customer advances (any status) − Σ pending invoice totals

A positive balance is credit held for the customer; a negative balance is
what the customer owes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping

from wage_ledger.calculators.identity import customer_key
from wage_ledger.calculators.periods import as_date
from wage_ledger.calculators.types import (
    AdvanceTransaction,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    PaymentMethod,
    PaymentRecord,
    _enum,
    to_money,
)
from wage_ledger.errors import NotFoundError, ValidationError
from wage_ledger.services.advance_ledger import AdvanceLedger
from wage_ledger.services.locking_service import EntityLocks
from wage_ledger.services.state_machine import InvoiceStateMachine
from wage_ledger.store.base import Collections, RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerStatement:
    """Everything needed to explain a customer's balance."""

    customer_key: str
    pending_invoices: list[Invoice] = field(default_factory=list)
    advances: list[AdvanceTransaction] = field(default_factory=list)
    pending_total: Decimal = Decimal("0")
    advance_total: Decimal = Decimal("0")

    @property
    def balance(self) -> Decimal:
        return self.advance_total - self.pending_total

    @property
    def owes(self) -> bool:
        return self.balance < 0


class ReceivablesLedger:
    """Invoices and advances keyed by the customer's normalized phone."""

    def __init__(
        self,
        store: RecordStore,
        max_advance_amount: Decimal | None = None,
        locks: EntityLocks | None = None,
    ):
        self.store = store
        self.locks = locks or EntityLocks()
        self.advances = AdvanceLedger(
            store,
            collection=Collections.CUSTOMER_ADVANCES,
            key=customer_key,
            max_amount=max_advance_amount,
        )

    # === Invoices ===

    async def create_invoice(
        self,
        customer_phone: str,
        items: Iterable[Mapping[str, Any]],
        tax_rate: Any = "0",
        invoice_date: date | str | None = None,
        invoice_number: str | None = None,
    ) -> Invoice:
        """Create a pending invoice; totals are derived from the items.

        Raises:
            ValidationError: Bad phone, no items, or an item with a
                non-positive quantity or price.
        """
        key = customer_key(customer_phone)
        line_items = tuple(InvoiceItem.from_record(item) for item in items)
        if not line_items:
            raise ValidationError("Invoice must have at least one item", field="items")
        rate = to_money(tax_rate if tax_rate not in (None, "") else "0", "tax_rate")
        if rate < 0:
            raise ValidationError("tax_rate cannot be negative", field="tax_rate")

        invoice = Invoice(
            customer_key=key,
            items=line_items,
            tax_rate=rate,
            date=as_date(invoice_date) if invoice_date else date.today(),
            status=InvoiceStatus.PENDING,
            invoice_number=invoice_number,
        )
        invoice_id = await self.store.create(Collections.INVOICES, invoice.to_record())
        logger.info(
            "Created invoice %s for %s totalling %s", invoice_id, key, invoice.total_amount
        )
        return Invoice.from_record({**invoice.to_record(), "id": invoice_id})

    async def get_invoice(self, invoice_id: str) -> Invoice:
        record = await self.store.get(Collections.INVOICES, invoice_id)
        if record is None:
            raise NotFoundError("Invoice", invoice_id)
        return Invoice.from_record(record)

    async def invoices(self, customer_phone: str) -> list[Invoice]:
        records = await self.store.query(
            Collections.INVOICES, {"customer_key": customer_key(customer_phone)}
        )
        invoices = [Invoice.from_record(r) for r in records]
        return sorted(invoices, key=lambda i: (i.date, i.id or ""))

    async def pending_invoices(self, customer_phone: str) -> list[Invoice]:
        return [i for i in await self.invoices(customer_phone) if i.is_pending]

    async def mark_paid(
        self,
        invoice_id: str,
        method: PaymentMethod | str = PaymentMethod.CASH,
        paid_on: date | str | None = None,
    ) -> PaymentRecord:
        """Move an invoice to paid and record the one payment for it.

        The status change is conditional on the invoice still being pending,
        and the payment id is derived from the invoice id, so two callers
        racing on one invoice cannot both record a payment. An invoice left
        paid without a payment by an interrupted call gets its payment on
        the next call.

        Raises:
            NotFoundError: Unknown invoice id.
            InvalidTransitionError: The invoice is already paid.
            ConcurrencyConflictError: Another payment of the invoice is in
                progress.
        """
        payment_method = _enum(PaymentMethod, method, "method")

        async with self.locks.try_hold(invoice_id, "invoice payment"):
            invoice = await self.get_invoice(invoice_id)
            if invoice.status is InvoiceStatus.PAID and not await self._payments_of(invoice_id):
                logger.warning(
                    "Invoice %s is paid without a payment record; recording it now", invoice_id
                )
                return await self._record_payment(invoice, payment_method, paid_on)

            InvoiceStateMachine.validate_transition(
                invoice.status, InvoiceStatus.PAID, reason="invoice is already settled"
            )
            # Status first, so a retry after a failed payment write cannot pay twice
            await self.store.update(
                Collections.INVOICES,
                invoice_id,
                {"status": InvoiceStatus.PAID.value},
                expected={"status": InvoiceStatus.PENDING.value},
            )
            return await self._record_payment(invoice, payment_method, paid_on)

    async def _payments_of(self, invoice_id: str) -> list[PaymentRecord]:
        records = await self.store.query(Collections.PAYMENTS, {"invoice_id": invoice_id})
        return [PaymentRecord.from_record(r) for r in records]

    async def _record_payment(
        self, invoice: Invoice, method: PaymentMethod, paid_on: date | str | None
    ) -> PaymentRecord:
        assert invoice.id is not None
        payment = PaymentRecord(
            invoice_id=invoice.id,
            customer_key=invoice.customer_key,
            amount=invoice.total_amount,
            method=method.value,
            date=as_date(paid_on) if paid_on else date.today(),
        )
        payment_id = await self.store.create(
            Collections.PAYMENTS, {**payment.to_record(), "id": f"pay-{invoice.id}"}
        )
        logger.info(
            "Invoice %s paid by %s (%s %s)",
            invoice.id,
            invoice.customer_key,
            payment.amount,
            payment.method,
        )
        return PaymentRecord.from_record({**payment.to_record(), "id": payment_id})

    async def payments(self, customer_phone: str) -> list[PaymentRecord]:
        records = await self.store.query(
            Collections.PAYMENTS, {"customer_key": customer_key(customer_phone)}
        )
        return [PaymentRecord.from_record(r) for r in records]

    # === Advances ===

    async def grant_advance(
        self,
        customer_phone: str,
        amount: Any,
        advance_date: date | str | None = None,
        method: PaymentMethod | str = PaymentMethod.CASH,
        notes: str | None = None,
    ) -> AdvanceTransaction:
        payment_method = _enum(PaymentMethod, method, "method")
        return await self.advances.grant_advance(
            customer_phone,
            amount,
            advance_date or date.today(),
            notes=notes,
            payment_method=payment_method.value,
        )

    # === Balances ===

    async def pending_total(self, customer_phone: str) -> Decimal:
        """Sum of pending invoice totals."""
        pending = await self.pending_invoices(customer_phone)
        return sum((i.total_amount for i in pending), Decimal("0"))

    async def advance_total(self, customer_phone: str) -> Decimal:
        return await self.advances.total_advanced(customer_phone)

    async def balance(self, customer_phone: str) -> Decimal:
        """Advances minus pending invoices. Negative means the customer owes."""
        return await self.advance_total(customer_phone) - await self.pending_total(
            customer_phone
        )

    async def customer_statement(self, customer_phone: str) -> CustomerStatement:
        key = customer_key(customer_phone)
        pending = await self.pending_invoices(key)
        advances = await self.advances.history(key)
        return CustomerStatement(
            customer_key=key,
            pending_invoices=pending,
            advances=advances,
            pending_total=sum((i.total_amount for i in pending), Decimal("0")),
            advance_total=sum((a.amount for a in advances), Decimal("0")),
        )
