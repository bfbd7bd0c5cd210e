"""Record store collaborator: protocol and adapters."""

from wage_ledger.store.base import Collections, GuardedStore, RecordStore
from wage_ledger.store.cache import ReadThroughCache
from wage_ledger.store.memory import InMemoryRecordStore
from wage_ledger.store.sql import SqlRecordStore

__all__ = [
    "Collections",
    "GuardedStore",
    "InMemoryRecordStore",
    "ReadThroughCache",
    "RecordStore",
    "SqlRecordStore",
]
