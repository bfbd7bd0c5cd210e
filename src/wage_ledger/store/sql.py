"""SQLAlchemy-backed record store.

Every call runs in its own session and transaction, so each store call is
one unit of work. Equality filters on string, integer and boolean fields
are pushed into SQL through JSON path expressions; anything else is
matched in Python after loading.

Updates are compare-and-set on ``version``: an update that loses a race
with another writer raises ConcurrencyConflictError instead of overwriting.
"""

from __future__ import annotations

from typing import Any, Mapping
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wage_ledger.errors import ConcurrencyConflictError, NotFoundError, PersistenceError
from wage_ledger.models import LedgerRecord
from wage_ledger.store.base import Record, check_expected, matches


class SqlRecordStore:
    """RecordStore over the ``ledger_record`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def _by_key(collection: str, record_id: str):
        return select(LedgerRecord).where(
            LedgerRecord.collection == collection,
            LedgerRecord.record_id == record_id,
        )

    async def create(self, collection: str, record: Mapping[str, Any]) -> str:
        record_id = str(record.get("id") or uuid4().hex)
        data = {k: v for k, v in record.items() if k != "id"}
        try:
            async with self.session_factory() as session, session.begin():
                session.add(
                    LedgerRecord(
                        collection=collection,
                        record_id=record_id,
                        data=data,
                        version=1,
                    )
                )
        except SQLAlchemyError as exc:
            raise PersistenceError("create", collection, exc) from exc
        return record_id

    async def get(self, collection: str, record_id: str) -> Record | None:
        try:
            async with self.session_factory() as session:
                result = await session.execute(self._by_key(collection, record_id))
                row = result.scalar_one_or_none()
                return row.to_record() if row is not None else None
        except SQLAlchemyError as exc:
            raise PersistenceError("get", collection, exc) from exc

    async def update(
        self,
        collection: str,
        record_id: str,
        patch: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> None:
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(self._by_key(collection, record_id))
                row = result.scalar_one_or_none()
                if row is None:
                    raise NotFoundError(collection, record_id)
                check_expected(collection, record_id, row.to_record(), expected)

                data = {**row.data, **{k: v for k, v in patch.items() if k != "id"}}
                written = await session.execute(
                    update(LedgerRecord)
                    .where(LedgerRecord.seq == row.seq, LedgerRecord.version == row.version)
                    .values(data=data, version=row.version + 1)
                    .execution_options(synchronize_session=False)
                )
                if written.rowcount != 1:
                    raise ConcurrencyConflictError(
                        record_id, f"{collection} record was updated concurrently"
                    )
        except SQLAlchemyError as exc:
            raise PersistenceError("update", collection, exc) from exc

    async def delete(self, collection: str, record_id: str) -> None:
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(self._by_key(collection, record_id))
                row = result.scalar_one_or_none()
                if row is None:
                    raise NotFoundError(collection, record_id)
                await session.delete(row)
        except SQLAlchemyError as exc:
            raise PersistenceError("delete", collection, exc) from exc

    async def query(
        self, collection: str, filters: Mapping[str, Any] | None = None
    ) -> list[Record]:
        filters = dict(filters or {})
        stmt = select(LedgerRecord).where(LedgerRecord.collection == collection)

        if "id" in filters:
            stmt = stmt.where(LedgerRecord.record_id == str(filters["id"]))
        for key, value in filters.items():
            if key == "id":
                continue
            # bool is checked first because it is a subclass of int
            if isinstance(value, bool):
                stmt = stmt.where(LedgerRecord.data[key].as_boolean() == value)
            elif isinstance(value, int):
                stmt = stmt.where(LedgerRecord.data[key].as_integer() == value)
            elif isinstance(value, str):
                stmt = stmt.where(LedgerRecord.data[key].as_string() == value)

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt.order_by(LedgerRecord.seq))
                rows = result.scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError("query", collection, exc) from exc

        records = [row.to_record() for row in rows]
        return [record for record in records if matches(record, filters)]
