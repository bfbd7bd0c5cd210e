"""Pytest fixtures for wage ledger tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio

from wage_ledger.auth import RoleAuthorizer, User
from wage_ledger.calculators.engine import PayrollCalculator
from wage_ledger.config import Settings
from wage_ledger.database import create_tables, get_engine, make_session_factory
from wage_ledger.services.advance_ledger import AdvanceLedger
from wage_ledger.services.attendance_service import AttendanceService
from wage_ledger.services.commit_service import PayrollCommitService
from wage_ledger.services.ledger_service import LedgerService
from wage_ledger.store import Collections, InMemoryRecordStore, SqlRecordStore

# Monday 2024-01-01 .. Sunday 2024-01-07 (ISO week 1)
PERIOD_START = date(2024, 1, 1)
PERIOD_END = date(2024, 1, 7)


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "database_url": "sqlite+aiosqlite:///:memory:",
        "engine_version": "test-1",
        "default_daily_rate": Decimal("500"),
        "standard_hours_per_day": Decimal("8"),
        "overtime_multiplier": Decimal("1.5"),
        "max_advance_amount": Decimal("100000"),
        "batch_max_workers": 4,
        "store_timeout_seconds": 5.0,
        "host": "127.0.0.1",
        "port": 8000,
        "debug": False,
        "log_level": "INFO",
    }
    values.update(overrides)
    return Settings(**values)


class FlakyStore(InMemoryRecordStore):
    """In-memory store that drops the next write armed in ``fail_on``."""

    def __init__(self, seed: Any = None) -> None:
        super().__init__(seed)
        self.fail_on: set[tuple[str, str]] = set()

    def _maybe_fail(self, operation: str, collection: str) -> None:
        if (operation, collection) in self.fail_on:
            self.fail_on.discard((operation, collection))
            raise ConnectionError(f"{operation} on {collection} dropped")

    async def create(self, collection: str, record: Any) -> str:
        self._maybe_fail("create", collection)
        return await super().create(collection, record)

    async def update(
        self, collection: str, record_id: str, patch: Any, expected: Any = None
    ) -> None:
        self._maybe_fail("update", collection)
        await super().update(collection, record_id, patch, expected)


@pytest.fixture
def settings() -> Settings:
    """Settings with the stock payroll constants and no environment lookups."""
    return make_settings()


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest_asyncio.fixture
async def sql_store(tmp_path) -> AsyncGenerator[SqlRecordStore, None]:
    """SQL record store on a throwaway SQLite file."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await create_tables(engine)
    yield SqlRecordStore(make_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def add_employee(store: InMemoryRecordStore) -> Callable[..., Awaitable[str]]:
    """Insert an employee record; ``daily_rate=None`` leaves the rate out."""

    async def _add(employee_id: str, daily_rate: Any = "500", **extra: Any) -> str:
        record: dict[str, Any] = {"id": employee_id, "name": f"Worker {employee_id}", **extra}
        if daily_rate is not None:
            record["daily_rate"] = str(daily_rate)
        return await store.create(Collections.EMPLOYEES, record)

    return _add


@pytest.fixture
def advances(store: InMemoryRecordStore, settings: Settings) -> AdvanceLedger:
    return AdvanceLedger(
        store, Collections.EMPLOYEE_ADVANCES, max_amount=settings.max_advance_amount
    )


@pytest.fixture
def calculator(
    store: InMemoryRecordStore, settings: Settings, advances: AdvanceLedger
) -> PayrollCalculator:
    return PayrollCalculator(store, settings=settings, advances=advances)


@pytest.fixture
def commits(store: InMemoryRecordStore, calculator: PayrollCalculator) -> PayrollCommitService:
    return PayrollCommitService(store, calculator)


@pytest.fixture
def attendance(store: InMemoryRecordStore) -> AttendanceService:
    return AttendanceService(store)


@pytest.fixture
def admin_ledger(store: InMemoryRecordStore, settings: Settings) -> LedgerService:
    return LedgerService(store, RoleAuthorizer(User(id="admin-1", role="admin")), settings)


@pytest_asyncio.fixture
async def scenario_a(
    add_employee: Callable[..., Awaitable[str]],
    attendance: AttendanceService,
    advances: AdvanceLedger,
) -> str:
    """Rate 500, five present days, 2 overtime hours, one 300 advance in period."""
    await add_employee("emp-a", daily_rate="500")
    for day in range(1, 6):
        await attendance.mark_attendance(
            "emp-a",
            date(2024, 1, day),
            "present",
            check_in="09:00",
            check_out="18:00",
            overtime_hours="2" if day == 3 else None,
        )
    await advances.grant_advance("emp-a", "300", date(2024, 1, 3), notes="festival")
    return "emp-a"
