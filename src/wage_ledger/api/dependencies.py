"""FastAPI dependencies for dependency injection."""

from typing import Annotated, TypeVar

from fastapi import Depends, Header, HTTPException, Request, status

from wage_ledger.auth import Role, RoleAuthorizer, User
from wage_ledger.services.ledger_service import LedgerService, OperationResult

T = TypeVar("T")

STATUS_BY_KIND: dict[str, int] = {
    "validation": status.HTTP_400_BAD_REQUEST,
    "not_found": status.HTTP_404_NOT_FOUND,
    "permission": status.HTTP_403_FORBIDDEN,
    "conflict": status.HTTP_409_CONFLICT,
    "invalid_transition": status.HTTP_409_CONFLICT,
    "persistence": status.HTTP_503_SERVICE_UNAVAILABLE,
}


class LedgerHTTPError(Exception):
    """A failed OperationResult on its way to the error handler."""

    def __init__(self, error_kind: str, detail: str):
        self.error_kind = error_kind
        self.detail = detail
        self.status_code = STATUS_BY_KIND.get(error_kind, status.HTTP_400_BAD_REQUEST)
        super().__init__(detail)


def unwrap(result: OperationResult[T]) -> T:
    """Return the value of a successful result or raise LedgerHTTPError."""
    if not result.success:
        raise LedgerHTTPError(result.error_kind or "error", result.detail or "Operation failed")
    return result.value  # type: ignore[return-value]


async def get_current_user(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[str | None, Header()] = None,
) -> User:
    """Extract the authenticated user from headers."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )
    return User(id=x_user_id, role=(x_user_role or Role.USER.value).lower())


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_ledger(request: Request, user: CurrentUser) -> LedgerService:
    """Build the facade for the calling user over the shared store."""
    state = request.app.state
    return LedgerService(
        state.store,
        RoleAuthorizer(user),
        settings=state.settings,
        commit_locks=state.commit_locks,
        invoice_locks=state.invoice_locks,
    )


# Type aliases for cleaner dependency injection
Ledger = Annotated[LedgerService, Depends(get_ledger)]
