"""Read-through cache owned by a calling context."""

from __future__ import annotations

import copy
import json
from typing import Any, Awaitable, Mapping, TypeVar

from wage_ledger.store.base import Record, RecordStore

T = TypeVar("T")


class ReadThroughCache:
    """Caches reads from a wrapped store until the next write.

    Any create, update or delete on a collection drops every cached read for
    that collection. A read that was in flight while such a write happened
    is returned to its caller but not cached. Instances are meant to live
    for one request or one batch run and are never shared between callers.
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self._queries: dict[str, dict[str, list[Record]]] = {}
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(filters: Mapping[str, Any] | None) -> str:
        return json.dumps(dict(filters or {}), sort_keys=True, default=str)

    def invalidate(self, collection: str | None = None) -> None:
        if collection is None:
            self._queries.clear()
            self._epoch += 1
        else:
            self._queries.pop(collection, None)
            self._generations[collection] = self._generations.get(collection, 0) + 1

    def _generation(self, collection: str) -> tuple[int, int]:
        return self._epoch, self._generations.get(collection, 0)

    async def _write(self, collection: str, awaitable: Awaitable[T]) -> T:
        # Dropped on both sides of the write so no read overlapping it is kept
        self.invalidate(collection)
        try:
            return await awaitable
        finally:
            self.invalidate(collection)

    async def create(self, collection: str, record: Mapping[str, Any]) -> str:
        return await self._write(collection, self.store.create(collection, record))

    async def get(self, collection: str, record_id: str) -> Record | None:
        records = await self.query(collection, {"id": record_id})
        return records[0] if records else None

    async def update(
        self,
        collection: str,
        record_id: str,
        patch: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> None:
        await self._write(collection, self.store.update(collection, record_id, patch, expected))

    async def delete(self, collection: str, record_id: str) -> None:
        await self._write(collection, self.store.delete(collection, record_id))

    async def query(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[Record]:
        key = self._key(filters)
        cached = self._queries.get(collection, {})
        if key in cached:
            self.hits += 1
            return copy.deepcopy(cached[key])

        self.misses += 1
        generation = self._generation(collection)
        if filters and set(filters) == {"id"}:
            record = await self.store.get(collection, filters["id"])
            records = [record] if record is not None else []
        else:
            records = await self.store.query(collection, filters)
        if self._generation(collection) == generation:
            self._queries.setdefault(collection, {})[key] = records
        return copy.deepcopy(records)
