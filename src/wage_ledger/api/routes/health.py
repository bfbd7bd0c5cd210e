"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request, status

from wage_ledger.api.schemas import HealthResponse
from wage_ledger.errors import LedgerError
from wage_ledger.store.base import Collections, GuardedStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(request: Request) -> HealthResponse:
    """Check API and record store health."""
    settings = request.app.state.settings
    store = GuardedStore(request.app.state.store, timeout=settings.store_timeout_seconds)
    store_status = "unhealthy"
    try:
        await store.query(Collections.EMPLOYEES, {"id": "__health__"})
        store_status = "healthy"
    except LedgerError as exc:
        logger.warning("Health check store read failed: %s", exc.message)

    return HealthResponse(
        status="healthy" if store_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        store=store_status,
    )


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
