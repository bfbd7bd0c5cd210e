"""Employee API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from wage_ledger.api.dependencies import Ledger, unwrap
from wage_ledger.api.schemas import (
    EmployeeCreate,
    EmployeeResponse,
    EmployeeStatusUpdate,
    EmployeeUpdate,
    ErrorResponse,
)

router = APIRouter(prefix="/employees", tags=["employees"])


@router.post(
    "",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_employee(ledger: Ledger, payload: EmployeeCreate) -> EmployeeResponse:
    """Add an active employee. Ids are generated per employee type when omitted."""
    employee = unwrap(
        await ledger.create_employee(
            payload.name,
            payload.daily_rate,
            phone=payload.phone,
            email=payload.email,
            role=payload.role,
            employee_type=payload.employee_type,
            join_date=payload.join_date,
            employee_id=payload.id,
        )
    )
    return EmployeeResponse.model_validate(employee)


@router.get("", response_model=list[EmployeeResponse])
async def list_employees(
    ledger: Ledger,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[EmployeeResponse]:
    employees = unwrap(await ledger.list_employees(status_filter))
    return [EmployeeResponse.model_validate(e) for e in employees]


@router.get(
    "/{employee_id}",
    response_model=EmployeeResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_employee(ledger: Ledger, employee_id: Annotated[str, Path()]) -> EmployeeResponse:
    return EmployeeResponse.model_validate(unwrap(await ledger.get_employee(employee_id)))


@router.patch(
    "/{employee_id}",
    response_model=EmployeeResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_employee(
    ledger: Ledger,
    employee_id: Annotated[str, Path()],
    payload: EmployeeUpdate,
) -> EmployeeResponse:
    """Change only the fields present in the request body."""
    changes = payload.model_dump(exclude_unset=True)
    employee = unwrap(await ledger.update_employee(employee_id, changes))
    return EmployeeResponse.model_validate(employee)


@router.post(
    "/{employee_id}/status",
    response_model=EmployeeResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def set_employee_status(
    ledger: Ledger,
    employee_id: Annotated[str, Path()],
    payload: EmployeeStatusUpdate,
) -> EmployeeResponse:
    employee = unwrap(await ledger.set_employee_status(employee_id, payload.status))
    return EmployeeResponse.model_validate(employee)
