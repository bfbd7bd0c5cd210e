"""Record store protocol and the guard applied around every store call."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Mapping, Protocol, TypeVar, runtime_checkable

from wage_ledger.errors import ConcurrencyConflictError, LedgerError, PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Collections:
    """Collection names used by the ledger."""

    EMPLOYEES = "employees"
    ATTENDANCE = "attendance"
    EMPLOYEE_ADVANCES = "advance_records"
    CUSTOMER_ADVANCES = "advance_payments"
    SALARY_RECORDS = "salary_records"
    SALARY_PAYMENTS = "salary_payments"
    INVOICES = "bills"
    PAYMENTS = "payments"


Record = dict[str, Any]


@runtime_checkable
class RecordStore(Protocol):
    """Keyed record store offering CRUD by collection name.

    Records are JSON-safe dicts. ``create`` assigns an id when the record
    has none and returns it; every record read back carries its ``id``.
    ``query`` filters by field equality.

    ``update`` takes an optional ``expected`` mapping. The patch is applied
    only if every expected field still holds its value; otherwise the call
    raises ConcurrencyConflictError and nothing is written.
    """

    async def create(self, collection: str, record: Mapping[str, Any]) -> str:
        ...

    async def get(self, collection: str, record_id: str) -> Record | None:
        ...

    async def update(
        self,
        collection: str,
        record_id: str,
        patch: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> None:
        ...

    async def delete(self, collection: str, record_id: str) -> None:
        ...

    async def query(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[Record]:
        ...


def matches(record: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
    """Equality match of every filter key against a record."""
    if not filters:
        return True
    return all(record.get(key) == value for key, value in filters.items())


def check_expected(
    collection: str,
    record_id: str,
    record: Mapping[str, Any],
    expected: Mapping[str, Any] | None,
) -> None:
    """Raise ConcurrencyConflictError when a guarded update finds changed fields."""
    if expected and not matches(record, expected):
        changed = ", ".join(
            f"{key}={record.get(key)!r}"
            for key, value in expected.items()
            if record.get(key) != value
        )
        raise ConcurrencyConflictError(record_id, f"{collection} record changed ({changed})")


class GuardedStore:
    """Wraps a store with a per-call timeout and error normalization.

    Ledger errors pass through unchanged. Timeouts and any other store
    failure surface as PersistenceError with the original cause attached.
    """

    def __init__(self, store: RecordStore, timeout: float | None = None):
        self.store = store
        self.timeout = timeout

    async def _call(self, operation: str, collection: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except LedgerError:
            raise
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError as exc:
            logger.warning(
                "Store %s on %s timed out after %ss", operation, collection, self.timeout
            )
            raise PersistenceError(operation, collection, exc) from exc
        except Exception as exc:
            logger.error("Store %s on %s failed: %r", operation, collection, exc)
            raise PersistenceError(operation, collection, exc) from exc

    async def create(self, collection: str, record: Mapping[str, Any]) -> str:
        return await self._call("create", collection, self.store.create(collection, record))

    async def get(self, collection: str, record_id: str) -> Record | None:
        return await self._call("get", collection, self.store.get(collection, record_id))

    async def update(
        self,
        collection: str,
        record_id: str,
        patch: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> None:
        await self._call(
            "update", collection, self.store.update(collection, record_id, patch, expected)
        )

    async def delete(self, collection: str, record_id: str) -> None:
        await self._call("delete", collection, self.store.delete(collection, record_id))

    async def query(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[Record]:
        return await self._call("query", collection, self.store.query(collection, filters))
