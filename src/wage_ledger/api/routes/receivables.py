"""Customer receivables API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, status

from wage_ledger.api.dependencies import Ledger, unwrap
from wage_ledger.api.schemas import (
    AdvanceResponse,
    BalanceResponse,
    CustomerAdvanceCreate,
    ErrorResponse,
    InvoiceCreate,
    InvoiceResponse,
    MarkPaidRequest,
    PaymentResponse,
)

router = APIRouter(tags=["receivables"])


@router.post(
    "/invoices",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def create_invoice(ledger: Ledger, payload: InvoiceCreate) -> InvoiceResponse:
    """Create a pending invoice; totals are computed from the items."""
    invoice = unwrap(
        await ledger.create_invoice(
            payload.customer_phone,
            [item.model_dump() for item in payload.items],
            payload.tax_rate,
            payload.invoice_date,
            payload.invoice_number,
        )
    )
    return InvoiceResponse.model_validate(invoice)


@router.post(
    "/invoices/{invoice_id}/mark-paid",
    response_model=PaymentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def mark_invoice_paid(
    ledger: Ledger,
    invoice_id: Annotated[str, Path()],
    payload: MarkPaidRequest,
) -> PaymentResponse:
    """Settle an invoice. A paid invoice cannot be paid again."""
    payment = unwrap(await ledger.mark_invoice_paid(invoice_id, payload.method, payload.paid_on))
    return PaymentResponse.model_validate(payment)


@router.post(
    "/customers/{phone}/advances",
    response_model=AdvanceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
async def grant_customer_advance(
    ledger: Ledger,
    phone: Annotated[str, Path()],
    payload: CustomerAdvanceCreate,
) -> AdvanceResponse:
    advance = unwrap(
        await ledger.grant_customer_advance(
            phone, payload.amount, payload.advance_date, payload.method, payload.notes
        )
    )
    return AdvanceResponse.model_validate(advance)


@router.get(
    "/customers/{phone}/balance",
    response_model=BalanceResponse,
    responses={400: {"model": ErrorResponse}},
)
async def customer_balance(ledger: Ledger, phone: Annotated[str, Path()]) -> BalanceResponse:
    """Advances minus pending invoices. Negative means the customer owes."""
    statement = unwrap(await ledger.customer_statement(phone))
    return BalanceResponse(
        customer_key=statement.customer_key,
        advance_total=statement.advance_total,
        pending_total=statement.pending_total,
        balance=statement.balance,
        pending_invoices=[InvoiceResponse.model_validate(i) for i in statement.pending_invoices],
        advances=[AdvanceResponse.model_validate(a) for a in statement.advances],
    )
