"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wage_ledger.api.dependencies import LedgerHTTPError
from wage_ledger.api.routes import (
    attendance_router,
    employees_router,
    health_router,
    payroll_router,
    receivables_router,
)
from wage_ledger.config import Settings, get_settings
from wage_ledger.database import create_tables, dispose_db, init_db
from wage_ledger.services.locking_service import EntityLocks
from wage_ledger.store import RecordStore, SqlRecordStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    owns_database = app.state.store is None
    if owns_database:
        engine, session_factory = init_db()
        await create_tables(engine)
        app.state.store = SqlRecordStore(session_factory)
        logger.info("Record store ready")
    yield
    if owns_database:
        await dispose_db()
        app.state.store = None


def create_app(store: RecordStore | None = None, settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Without ``store`` the app opens the configured database on startup.
    """
    settings = settings or get_settings()
    app = FastAPI(
        title="Wage Ledger API",
        description="Daily-wage payroll and customer receivables",
        version=settings.engine_version,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.commit_locks = EntityLocks()
    app.state.invoice_locks = EntityLocks()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LedgerHTTPError)
    async def ledger_error_handler(request: Request, exc: LedgerHTTPError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "code": exc.error_kind.upper()},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(employees_router, prefix="/api/v1")
    app.include_router(attendance_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")
    app.include_router(receivables_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
