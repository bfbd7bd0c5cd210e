"""ORM models."""

from wage_ledger.models.base import Base, TimestampMixin
from wage_ledger.models.record import LedgerRecord

__all__ = ["Base", "TimestampMixin", "LedgerRecord"]
