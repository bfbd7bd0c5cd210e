"""Per-entity locks guarding advance sweeps, payroll commits and invoice payments."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from wage_ledger.errors import ConcurrencyConflictError


class EntityLocks:
    """Registry of asyncio locks keyed by entity id.

    ``try_hold`` fails fast with ConcurrencyConflictError when the entity is
    already locked, which is what a second concurrent commit should see.
    ``hold`` waits its turn and is used to serialize batch items that touch
    the same entity.

    A lock stays registered only while some caller holds or waits for it.
    Locks are in-process only; deployments running several workers against
    one database also rely on the conditional updates in the record store.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def _checkout(self, entity_id: str) -> asyncio.Lock:
        lock = self._locks.get(entity_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[entity_id] = lock
        self._users[entity_id] = self._users.get(entity_id, 0) + 1
        return lock

    def _checkin(self, entity_id: str) -> None:
        remaining = self._users[entity_id] - 1
        if remaining:
            self._users[entity_id] = remaining
        else:
            del self._users[entity_id]
            del self._locks[entity_id]

    def __len__(self) -> int:
        return len(self._locks)

    def is_locked(self, entity_id: str) -> bool:
        lock = self._locks.get(entity_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def try_hold(self, entity_id: str, operation: str = "commit") -> AsyncIterator[None]:
        if self.is_locked(entity_id):
            raise ConcurrencyConflictError(entity_id, f"another {operation} is in progress")
        lock = self._checkout(entity_id)
        try:
            await lock.acquire()
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(entity_id)

    @asynccontextmanager
    async def hold(self, entity_id: str) -> AsyncIterator[None]:
        lock = self._checkout(entity_id)
        try:
            async with lock:
                yield
        finally:
            self._checkin(entity_id)
