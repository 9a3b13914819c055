"""
Auth endpoints: signup (invite-gated), login, re-authentication, invite check.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from devcore.api.v1.deps import client_ip, get_current_active_user, get_db
from devcore.core.config import settings
from devcore.core.exceptions import (AuthenticationFailed, Conflict, NotFound,
                                     PermissionDenied, ValidationFailed)
from devcore.core.permissions import INVITE_ONLY_ROLES, Role, default_permissions
from devcore.core.security import (create_access_token, get_password_hash,
                                   verify_password)
from devcore.db.base import ensure_utc, utcnow
from devcore.models.invite_code import InviteCode
from devcore.models.user import User
from devcore.schemas.auth import (AuthData, InviteCheck, LoginRequest,
                                  ReauthenticateRequest, SignupRequest,
                                  TokenData, VerifyInviteRequest)
from devcore.schemas.common import Envelope
from devcore.schemas.user import UserRead
from devcore.services import audit
from devcore.services.mailer import queue_email

# Rate limiter, keyed by client IP
limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.RATE_LIMIT_ENABLED,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)

_USED_CODE = "Invite code has already been used"


def invite_is_expired(invite: InviteCode) -> bool:
    expires_at = ensure_utc(invite.expires_at)
    return expires_at is not None and expires_at <= utcnow()


@router.post("/signup", response_model=Envelope[AuthData], status_code=201)
async def signup(
    body: SignupRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Register an account. Staff roles must redeem an invite code bound to that role."""
    existing = await db.scalar(select(User.id).where(User.email == body.email))
    if existing is not None:
        raise Conflict("An account with this email already exists")

    role = body.role
    invite: InviteCode | None = None
    if role in INVITE_ONLY_ROLES:
        if not body.invite_code:
            raise ValidationFailed("Invite code is required for this role")
        invite = await db.scalar(select(InviteCode).where(InviteCode.code == body.invite_code))
        if invite is None or invite.role != role.value or invite_is_expired(invite):
            raise ValidationFailed("Invalid or expired invite code")
        if invite.used:
            raise Conflict(_USED_CODE)

    first_name, *rest = body.name.split(" ", 1)
    auto_approved = role is Role.CLIENT
    user = User(
        email=body.email,
        hashed_password=get_password_hash(body.password),
        first_name=first_name,
        last_name=rest[0].strip() if rest else None,
        phone=body.phone,
        role=role.value,
        company_name=body.company_name,
        industry=body.industry,
        position=body.position,
        skills=body.skills,
        experience=body.experience,
        github_username=body.github_username,
        portfolio=body.portfolio,
        is_active=True,
        is_approved=True if auto_approved else None,
        **default_permissions(role),
    )
    db.add(user)

    if invite is not None:
        # Conditional update: a concurrent redemption leaves rowcount == 0.
        redeemed = await db.execute(
            update(InviteCode)
            .where(InviteCode.id == invite.id, InviteCode.used.is_(False))
            .values(used=True, used_by=body.email, used_at=utcnow())
        )
        if redeemed.rowcount != 1:
            await db.rollback()
            raise Conflict(_USED_CODE)

    await db.flush()
    db.add(
        audit.activity_entry(
            audit.USER_CREATED,
            user.id,
            user.id,
            "user",
            {"email": user.email, "role": user.role, "inviteCode": body.invite_code},
            client_ip(request),
        )
    )
    await db.commit()
    await db.refresh(user)
    logger.info("User %s signed up as %s", user.id, user.role)

    if auto_approved:
        queue_email(
            background_tasks,
            user.email,
            "welcome-client",
            first_name=user.first_name,
            login_url=f"{settings.FRONTEND_URL}/login",
        )
        return {
            "message": "Account created successfully",
            "data": {"token": create_access_token(user.id, user.role), "user": user},
        }

    queue_email(
        background_tasks,
        user.email,
        "application-received",
        first_name=user.first_name,
        role=user.role,
    )
    return {
        "message": "Application submitted. You will be notified once approved.",
        "data": {"token": None, "user": user},
    }


@router.post("/login", response_model=Envelope[AuthData])
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Check password, then active flag, then approval; only then issue a token."""
    if not body.email or not body.password:
        raise ValidationFailed("Please provide both email and password")

    user = await db.scalar(select(User).where(User.email == body.email))
    if user is None or not verify_password(body.password, user.hashed_password):
        raise AuthenticationFailed("Invalid credentials")
    if not user.is_active:
        raise PermissionDenied("Your account has been deactivated")
    if user.role != Role.CLIENT.value and user.is_approved is not True:
        if user.is_approved is False:
            raise PermissionDenied(
                "Your application was not approved", needsApproval=True, rejected=True
            )
        raise PermissionDenied("Your account is pending approval", needsApproval=True)

    user.last_login = utcnow()
    await db.commit()
    await db.refresh(user)
    logger.info("User %s logged in", user.id)
    return {
        "message": "Login successful",
        "data": {"token": create_access_token(user.id, user.role), "user": user},
    }


@router.post("/reauthenticate", response_model=Envelope[TokenData])
async def reauthenticate(
    body: ReauthenticateRequest,
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Exchange the password for a short-lived token accepted by destructive operations."""
    if not verify_password(body.password, current_user.hashed_password):
        raise AuthenticationFailed("Invalid credentials")
    token = create_access_token(current_user.id, current_user.role, fresh=True)
    return {
        "data": {
            "token": token,
            "expires_in": int(timedelta(minutes=settings.FRESH_TOKEN_EXPIRE_MINUTES).total_seconds()),
        }
    }


@router.post("/verify-invite", response_model=Envelope[InviteCheck])
async def verify_invite(
    body: VerifyInviteRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    invite = await db.scalar(select(InviteCode).where(InviteCode.code == body.code))
    if invite is None:
        raise NotFound("Invalid invite code")
    if invite.used:
        raise Conflict(_USED_CODE)
    if invite_is_expired(invite):
        raise ValidationFailed("Invite code has expired")
    return {"message": "Invite code is valid", "data": {"role": invite.role}}


@router.get("/me", response_model=Envelope[UserRead])
async def read_current_user(
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Return profile of the currently authenticated user."""
    return {"data": current_user}
