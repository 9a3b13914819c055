"""
FastAPI dependencies: auth guards and database session.

Every guard resolves the caller from the bearer token, reloads the user
row, and delegates the access decision to :mod:`devcore.core.permissions`.
"""

from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.core.config import settings
from devcore.core.exceptions import AuthenticationFailed, PermissionDenied
from devcore.core.permissions import Action, Permission, Role, authorize
from devcore.core.security import decode_access_token
from devcore.db.session import get_db
from devcore.models.user import User
from devcore.services.audit import PostCommitEffects

__all__ = [
    "get_db",
    "get_token_payload",
    "get_current_user",
    "get_current_active_user",
    "require_roles",
    "require_permission",
    "require_super_admin",
    "require_fresh_token",
    "get_effects",
    "client_ip",
]

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_PREFIX}/auth/login", auto_error=False
)


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


async def get_effects(request: Request) -> PostCommitEffects:
    return PostCommitEffects(ip_address=client_ip(request))


# ── Auth dependencies ───────────────────────────────────────────────
async def get_token_payload(token: Optional[str] = Depends(oauth2_scheme)) -> dict:
    if not token:
        raise AuthenticationFailed("Not authenticated. Please log in.")
    payload = decode_access_token(token)
    if payload is None or payload.get("sub") is None:
        raise AuthenticationFailed("Invalid or expired token")
    return payload


async def get_current_user(
    payload: dict = Depends(get_token_payload),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode JWT and look up the user; ``sub`` (user id) is authoritative."""
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationFailed("Invalid or expired token") from None

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthenticationFailed("User no longer exists")
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Reject deactivated accounts."""
    if not current_user.is_active:
        raise PermissionDenied("Your account has been deactivated")
    return current_user


def require_roles(*roles: Role) -> Callable:
    action = Action(roles=frozenset(roles))

    async def _guard(current_user: User = Depends(get_current_active_user)) -> User:
        authorize(current_user, action, "You do not have permission to access this resource")
        return current_user

    return _guard


def require_permission(permission: Permission, *roles: Role) -> Callable:
    action = Action(permission=permission, roles=frozenset(roles) if roles else None)

    async def _guard(current_user: User = Depends(get_current_active_user)) -> User:
        authorize(current_user, action)
        return current_user

    return _guard


async def require_super_admin(
    current_user: User = Depends(get_current_active_user),
) -> User:
    authorize(current_user, Action(super_admin_only=True))
    return current_user


async def require_fresh_token(
    payload: dict = Depends(get_token_payload),
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Demand a short-lived token minted by ``/auth/reauthenticate``."""
    if not payload.get("fresh"):
        raise AuthenticationFailed(
            "Please re-enter your password to continue", requiresReauth=True
        )
    return current_user
