"""Authorization collaborator.

Only role checks live here. Login, passwords and sessions belong to the
caller, which hands over the already-authenticated user.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from wage_ledger.errors import PermissionDeniedError


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


ROLE_HIERARCHY: dict[str, int] = {
    Role.ADMIN.value: 3,
    Role.MANAGER.value: 2,
    Role.USER.value: 1,
}

# Mutations need manager, reads need user
WRITE_ROLE = Role.MANAGER
READ_ROLE = Role.USER


@dataclass(frozen=True)
class User:
    id: str
    role: str


@runtime_checkable
class Authorizer(Protocol):
    def has_permission(self, required_role: str) -> bool:
        ...

    def current_user(self) -> User | None:
        ...


class RoleAuthorizer:
    """Grants a role to every user at or above it in the hierarchy."""

    def __init__(self, user: User | None):
        self.user = user

    def current_user(self) -> User | None:
        return self.user

    def has_permission(self, required_role: str | Role) -> bool:
        if self.user is None:
            return False
        required = required_role.value if isinstance(required_role, Role) else required_role
        user_level = ROLE_HIERARCHY.get(self.user.role, 0)
        return user_level >= ROLE_HIERARCHY.get(required, len(ROLE_HIERARCHY) + 1)


def require_permission(authorizer: Authorizer, required_role: str | Role) -> User:
    """Return the current user, or raise PermissionDeniedError."""
    required = required_role.value if isinstance(required_role, Role) else required_role
    user = authorizer.current_user()
    if user is None or not authorizer.has_permission(required):
        raise PermissionDeniedError(required, user.role if user else None)
    return user
