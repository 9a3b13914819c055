"""
JWT token creation / verification, password hashing (bcrypt) and the
random secrets used for password resets and invite codes.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from devcore.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_ALGORITHM = settings.ALGORITHM
_SECRET = settings.SECRET_KEY


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


# ── JWT tokens ──────────────────────────────────────────────────────
def create_access_token(
    subject: str | Any,
    role: str | None = None,
    *,
    fresh: bool = False,
    expires_delta: timedelta | None = None,
) -> str:
    """Issue a session token.

    Standard sessions are long-lived. A *fresh* token is only minted after
    the caller re-enters their password and expires after
    ``FRESH_TOKEN_EXPIRE_MINUTES``.
    """
    if expires_delta is None:
        minutes = (
            settings.FRESH_TOKEN_EXPIRE_MINUTES
            if fresh
            else settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
        expires_delta = timedelta(minutes=minutes)
    expire = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(
        {
            "exp": expire,
            "sub": str(subject),
            "role": role,
            "type": "access",
            "fresh": fresh,
        },
        _SECRET,
        algorithm=_ALGORITHM,
    )


def decode_access_token(token: str) -> dict | None:
    """Return payload dict if *access* token is valid, else ``None``."""
    try:
        payload = jwt.decode(token, _SECRET, algorithms=[_ALGORITHM])
        if payload.get("type") != "access":
            return None
        return payload
    except JWTError:
        return None


# ── One-time secrets ────────────────────────────────────────────────
def generate_reset_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 digest used to store reset tokens at rest."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_invite_code() -> str:
    return secrets.token_hex(4).upper()
