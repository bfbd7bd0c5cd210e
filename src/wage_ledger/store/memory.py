"""Dict-backed record store for previews and tests."""

from __future__ import annotations

import copy
from typing import Any, Mapping
from uuid import uuid4

from wage_ledger.errors import NotFoundError
from wage_ledger.store.base import Record, check_expected, matches


class InMemoryRecordStore:
    """In-process RecordStore. Records are copied on the way in and out."""

    def __init__(self, seed: Mapping[str, list[Mapping[str, Any]]] | None = None):
        self._collections: dict[str, dict[str, Record]] = {}
        for collection, records in (seed or {}).items():
            for record in records:
                self._insert(collection, record)

    def _insert(self, collection: str, record: Mapping[str, Any]) -> str:
        record_id = str(record.get("id") or uuid4().hex)
        stored = copy.deepcopy(dict(record))
        stored["id"] = record_id
        self._collections.setdefault(collection, {})[record_id] = stored
        return record_id

    async def create(self, collection: str, record: Mapping[str, Any]) -> str:
        return self._insert(collection, record)

    async def get(self, collection: str, record_id: str) -> Record | None:
        record = self._collections.get(collection, {}).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def update(
        self,
        collection: str,
        record_id: str,
        patch: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> None:
        records = self._collections.get(collection, {})
        if record_id not in records:
            raise NotFoundError(collection, record_id)
        check_expected(collection, record_id, records[record_id], expected)
        updated = {**records[record_id], **copy.deepcopy(dict(patch))}
        updated["id"] = record_id
        records[record_id] = updated

    async def delete(self, collection: str, record_id: str) -> None:
        records = self._collections.get(collection, {})
        if record_id not in records:
            raise NotFoundError(collection, record_id)
        del records[record_id]

    async def query(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[Record]:
        return [
            copy.deepcopy(record)
            for record in self._collections.get(collection, {}).values()
            if matches(record, filters)
        ]

    def count(self, collection: str) -> int:
        return len(self._collections.get(collection, {}))
