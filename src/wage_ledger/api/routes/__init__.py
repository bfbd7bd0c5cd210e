"""API routes."""

from wage_ledger.api.routes.attendance import router as attendance_router
from wage_ledger.api.routes.employees import router as employees_router
from wage_ledger.api.routes.health import router as health_router
from wage_ledger.api.routes.payroll import router as payroll_router
from wage_ledger.api.routes.receivables import router as receivables_router

__all__ = [
    "attendance_router",
    "employees_router",
    "health_router",
    "payroll_router",
    "receivables_router",
]
