"""
Role / permission authorization model.

Every access decision in the API goes through :func:`evaluate`, an ordered
rule chain over the caller's role, their permission flags and the target
resource's owners:

1. ``SUPER_ADMIN`` callers are always allowed.
2. Super-admin-only actions are denied to everyone else.
3. Callers listed as owners of the target resource are allowed.
4. Otherwise the caller must hold one of the allowed roles (when the
   action names any) *and* the required permission flag (when it names
   one).

Pure Python: no FastAPI imports, no database access.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from devcore.core.exceptions import AuthenticationFailed, PermissionDenied


class Role(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    DEVELOPER = "DEVELOPER"
    CLIENT = "CLIENT"


class Permission(str, Enum):
    """Boolean grants stored on the user row (value = column name)."""

    APPROVE_USERS = "can_approve_users"
    DELETE_USERS = "can_delete_users"
    MANAGE_PROJECTS = "can_manage_projects"
    ASSIGN_TASKS = "can_assign_tasks"
    VIEW_ALL_PROJECTS = "can_view_all_projects"


ADMIN_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN})
STAFF_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.DEVELOPER})
INVITE_ONLY_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.DEVELOPER})


class Caller(Protocol):
    id: int
    role: str


@dataclass(frozen=True)
class Action:
    """Describes what an operation needs from its caller."""

    permission: Optional[Permission] = None
    roles: Optional[frozenset[Role]] = None
    owner_ids: tuple[int, ...] = field(default_factory=tuple)
    super_admin_only: bool = False

    @classmethod
    def owned_by(cls, *owner_ids: Optional[int], **kwargs) -> "Action":
        return cls(owner_ids=tuple(o for o in owner_ids if o is not None), **kwargs)


def is_super_admin(caller: Caller) -> bool:
    return caller.role == Role.SUPER_ADMIN.value


def has_permission(caller: Caller, permission: Permission) -> bool:
    if is_super_admin(caller):
        return True
    return getattr(caller, permission.value, False) is True


def evaluate(caller: Caller, action: Action) -> bool:
    if is_super_admin(caller):
        return True
    if action.super_admin_only:
        return False
    if action.owner_ids and caller.id in action.owner_ids:
        return True
    if action.owner_ids and action.roles is None and action.permission is None:
        # Purely ownership-scoped action and the caller is not an owner.
        return False
    if action.roles is not None and caller.role not in {r.value for r in action.roles}:
        return False
    if action.permission is not None and not has_permission(caller, action.permission):
        return False
    return True


def authorize(caller: Optional[Caller], action: Action, message: str | None = None) -> None:
    """Raise unless *caller* may perform *action*."""
    if caller is None:
        raise AuthenticationFailed("Not authenticated")
    if evaluate(caller, action):
        return
    if message is None:
        if action.super_admin_only:
            message = "This action requires Super Admin privileges"
        elif action.permission is not None:
            message = f"Permission denied: {action.permission.value} required"
        else:
            message = "Not authorized to perform this action"
    raise PermissionDenied(message)


def default_permissions(role: Role | str) -> dict[str, bool]:
    """Permission flags granted to a freshly registered user of *role*."""
    role = Role(role)
    return {
        Permission.APPROVE_USERS.value: role is Role.SUPER_ADMIN,
        Permission.DELETE_USERS.value: role is Role.SUPER_ADMIN,
        Permission.MANAGE_PROJECTS.value: role in ADMIN_ROLES,
        Permission.ASSIGN_TASKS.value: role in ADMIN_ROLES,
        Permission.VIEW_ALL_PROJECTS.value: role is Role.SUPER_ADMIN,
    }
