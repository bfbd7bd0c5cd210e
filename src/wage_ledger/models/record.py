"""Generic keyed record table backing the SQL record store."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, BigInteger, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from wage_ledger.models.base import Base, TimestampMixin


class LedgerRecord(Base, TimestampMixin):
    """One record in one collection.

    The payload is stored as JSON. ``version`` increments on every update.
    ``seq`` follows insertion order and is what reads are ordered by.
    """

    __tablename__ = "ledger_record"

    seq: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    collection: Mapped[str] = mapped_column(String(64), nullable=False)
    record_id: Mapped[str] = mapped_column(String(64), nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("collection", "record_id", name="ledger_record_key_uq"),
        Index("ledger_record_collection_idx", "collection"),
    )

    def to_record(self) -> dict[str, Any]:
        return {**self.data, "id": self.record_id}
