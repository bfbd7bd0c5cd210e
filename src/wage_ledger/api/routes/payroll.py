"""Payroll API endpoints: preview, commit, bulk pay, advances and reports."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from wage_ledger.api.dependencies import Ledger, unwrap
from wage_ledger.api.schemas import (
    AdvanceCreate,
    AdvanceResponse,
    BatchResponse,
    BulkPayRequest,
    CommitResponse,
    EmployeeSummaryResponse,
    ErrorResponse,
    PayrollCommitRequest,
    PayrollPreviewResponse,
    PeriodTotalResponse,
    SalaryPaymentResponse,
)

router = APIRouter(tags=["payroll"])


# ============================================================================
# Payroll
# ============================================================================


@router.get(
    "/payroll/{employee_id}/preview",
    response_model=PayrollPreviewResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def preview_payroll(
    ledger: Ledger,
    employee_id: Annotated[str, Path()],
    period_start: date,
    period_end: date,
) -> PayrollPreviewResponse:
    """Calculate pay without persisting anything. Deterministic."""
    calculation = unwrap(await ledger.preview_payroll(employee_id, period_start, period_end))
    return PayrollPreviewResponse.model_validate(calculation)


@router.post(
    "/payroll/{employee_id}/commit",
    response_model=CommitResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def commit_payroll(
    ledger: Ledger,
    employee_id: Annotated[str, Path()],
    payload: PayrollCommitRequest,
) -> CommitResponse:
    """Commit pay for one period. Re-committing the same period returns the payment."""
    committed = unwrap(
        await ledger.commit_payroll(
            employee_id,
            payload.period_start,
            payload.period_end,
            payload.payment_method,
            payload.payment_date,
        )
    )
    return CommitResponse(
        is_new=committed.is_new,
        payment=SalaryPaymentResponse.model_validate(committed.payment),
    )


@router.post("/payroll/bulk-pay", response_model=BatchResponse)
async def bulk_pay(ledger: Ledger, payload: BulkPayRequest) -> BatchResponse:
    """Pay many employees; one failure never stops the others."""
    if payload.employee_ids is None:
        result = await ledger.pay_all_present(
            payload.period_start, payload.payment_method, timeout=payload.timeout_seconds
        )
    else:
        result = await ledger.bulk_pay(
            payload.employee_ids,
            payload.period_start,
            payload.period_end or payload.period_start,
            payload.payment_method,
            payload.payment_date,
            timeout=payload.timeout_seconds,
        )
    return BatchResponse.model_validate(unwrap(result))


# ============================================================================
# Employee advances
# ============================================================================


@router.post(
    "/advances",
    response_model=AdvanceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def grant_advance(ledger: Ledger, payload: AdvanceCreate) -> AdvanceResponse:
    advance = unwrap(
        await ledger.grant_employee_advance(
            payload.employee_id,
            payload.amount,
            payload.advance_date,
            notes=payload.notes,
            payment_method=payload.payment_method,
        )
    )
    return AdvanceResponse.model_validate(advance)


@router.post(
    "/advances/{advance_id}/settle",
    response_model=AdvanceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def settle_advance(ledger: Ledger, advance_id: Annotated[str, Path()]) -> AdvanceResponse:
    """Mark a pending advance as repaid directly."""
    return AdvanceResponse.model_validate(unwrap(await ledger.settle_advance(advance_id)))


@router.get("/employees/{employee_id}/advances", response_model=list[AdvanceResponse])
async def list_advances(
    ledger: Ledger, employee_id: Annotated[str, Path()]
) -> list[AdvanceResponse]:
    advances = unwrap(await ledger.employee_advances_history(employee_id))
    return [AdvanceResponse.model_validate(a) for a in advances]


# ============================================================================
# Reports
# ============================================================================


@router.get(
    "/employees/{employee_id}/summary",
    response_model=EmployeeSummaryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def employee_summary(
    ledger: Ledger, employee_id: Annotated[str, Path()]
) -> EmployeeSummaryResponse:
    summary = unwrap(await ledger.employee_summary(employee_id))
    return EmployeeSummaryResponse.model_validate(summary)


@router.get("/reports/salary-totals", response_model=list[PeriodTotalResponse])
async def salary_totals(
    ledger: Ledger,
    employee_id: str | None = None,
    group_by: Annotated[str, Query(pattern="^(week|month)$")] = "week",
) -> list[PeriodTotalResponse]:
    totals = unwrap(await ledger.salary_totals(employee_id, group_by))
    return [PeriodTotalResponse.model_validate(t) for t in totals]
