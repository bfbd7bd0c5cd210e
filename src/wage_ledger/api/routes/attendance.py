"""Attendance API endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from wage_ledger.api.dependencies import Ledger, unwrap
from wage_ledger.api.schemas import (
    AttendanceBulkRequest,
    AttendanceMark,
    AttendanceResponse,
    BatchResponse,
    DailyAttendanceResponse,
    ErrorResponse,
    MarkAllRequest,
)

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.post(
    "",
    response_model=AttendanceResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def mark_attendance(ledger: Ledger, payload: AttendanceMark) -> AttendanceResponse:
    """Create or update the attendance record for (employee, date)."""
    record = unwrap(
        await ledger.mark_attendance(
            payload.employee_id,
            payload.attendance_date,
            payload.status,
            check_in=payload.check_in,
            check_out=payload.check_out,
            overtime_hours=payload.overtime_hours,
            notes=payload.notes,
        )
    )
    return AttendanceResponse.model_validate(record)


@router.post("/bulk", response_model=BatchResponse)
async def save_bulk_attendance(ledger: Ledger, payload: AttendanceBulkRequest) -> BatchResponse:
    """Save many entries; failures are reported per entry."""
    entries = [
        {
            "employee_id": entry.employee_id,
            "date": entry.attendance_date,
            "status": entry.status,
            "check_in": entry.check_in,
            "check_out": entry.check_out,
            "overtime_hours": entry.overtime_hours,
            "notes": entry.notes,
        }
        for entry in payload.entries
    ]
    return BatchResponse.model_validate(unwrap(await ledger.save_bulk_attendance(entries)))


@router.post("/mark-all", response_model=BatchResponse)
async def mark_all(ledger: Ledger, payload: MarkAllRequest) -> BatchResponse:
    """Mark every listed employee with one status and the default shift."""
    result = unwrap(
        await ledger.mark_all(payload.employee_ids, payload.attendance_date, payload.status)
    )
    return BatchResponse.model_validate(result)


@router.get("/daily", response_model=DailyAttendanceResponse)
async def daily_attendance(
    ledger: Ledger,
    attendance_date: Annotated[date, Query(alias="date")],
) -> DailyAttendanceResponse:
    """Head counts by status for one date."""
    counts = unwrap(await ledger.daily_attendance(attendance_date))
    return DailyAttendanceResponse.model_validate(counts)


@router.delete(
    "/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_attendance(ledger: Ledger, record_id: Annotated[str, Path()]) -> None:
    unwrap(await ledger.delete_attendance(record_id))
