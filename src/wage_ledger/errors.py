"""Error kinds raised by the ledger engine.

Every error carries a short ``kind`` string so batch runs and the result
facade can report failures without inspecting exception classes.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for expected business errors."""

    kind = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(LedgerError):
    """Missing field, bad format or non-positive amount. Nothing was written."""

    kind = "validation"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NotFoundError(LedgerError):
    """Unknown employee, customer, invoice or advance id."""

    kind = "not_found"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class PermissionDeniedError(LedgerError):
    """Authorization check failed before any computation."""

    kind = "permission"

    def __init__(self, required_role: str, user_role: str | None = None):
        self.required_role = required_role
        self.user_role = user_role
        super().__init__(
            f"Role '{user_role or 'anonymous'}' lacks required role '{required_role}'"
        )


class ConcurrencyConflictError(LedgerError):
    """Another operation against the same entity is in flight or already applied.

    Callers should refresh and retry.
    """

    kind = "conflict"

    def __init__(self, entity_id: str, reason: str):
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Conflict on '{entity_id}': {reason}")


class PersistenceError(LedgerError):
    """The record store failed. The original exception is kept as ``cause``."""

    kind = "persistence"

    def __init__(self, operation: str, collection: str, cause: BaseException | None = None):
        self.operation = operation
        self.collection = collection
        self.cause = cause
        detail = f"{operation} on '{collection}' failed"
        if cause is not None:
            detail += f": {cause!r}"
        super().__init__(detail)
