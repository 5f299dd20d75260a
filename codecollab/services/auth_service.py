"""
Authentication service.

Handles:
- Registration (role `user` with its default permission bundle)
- Credential checks and login (opens a session via session_service)
- Password change (revokes every session, re-opens one for the caller)
- Password reset by emailed one-time token

All business logic lives here — controllers call service methods
and return the result.
"""

import logging
import uuid
from datetime import timedelta

import aiosmtplib
from fastapi import HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from codecollab.core.config import settings
from codecollab.core.exceptions import AuthenticationFailure, AuthorizationFailure
from codecollab.core.security import (
    generate_reset_token,
    hash_password,
    hash_token,
    verify_password,
)
from codecollab.core.security_events import security_event
from codecollab.models.base import as_utc, utcnow
from codecollab.models.session import RevocationReason
from codecollab.models.user import User, UserRole
from codecollab.rbac.permissions import default_permissions_for_role
from codecollab.services import email_service, session_service
from codecollab.services.session_service import DeviceInfo

logger = logging.getLogger(__name__)

# Compared against when the email is unknown so both paths pay for a bcrypt check.
_DUMMY_PASSWORD_HASH = hash_password("codecollab-unknown-account")


# ── Registration ─────────────────────────────────────────────────────

async def register_user(
    email: str,
    username: str,
    password: str,
    db: AsyncSession,
) -> User:
    email = email.lower()
    existing = await db.execute(
        select(User.email, User.username).where(
            or_(User.email == email, User.username == username)
        )
    )
    clash = existing.first()
    if clash is not None:
        field = "email" if clash.email == email else "username"
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A user with this {field} already exists",
        )

    user = User(
        id=uuid.uuid4(),
        email=email,
        username=username,
        password_hash=hash_password(password),
        role=UserRole.USER,
        permissions=default_permissions_for_role(UserRole.USER),
        is_active=True,
        is_suspended=False,
    )
    db.add(user)
    await db.flush()
    logger.info("Registered user %s", user.id)
    return user


# ── Login ────────────────────────────────────────────────────────────

async def authenticate_user(
    email: str,
    password: str,
    device: DeviceInfo,
    db: AsyncSession,
) -> User:
    """
    Check credentials and account state.

    Unknown email and wrong password are indistinguishable to the
    caller; both emit LOGIN_FAILED.
    """
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()

    if user is None:
        verify_password(password, _DUMMY_PASSWORD_HASH)
        password_ok = False
    else:
        password_ok = verify_password(password, user.password_hash)

    if not password_ok:
        security_event(
            "LOGIN_FAILED",
            severity="medium",
            email=email,
            ip=device.ip,
            user_agent=device.user_agent,
        )
        raise AuthenticationFailure("Invalid credentials")

    if not user.is_active:
        raise AuthorizationFailure({"message": "Account deactivated"})

    if user.is_currently_suspended():
        raise AuthorizationFailure({
            "message": "Account suspended",
            "reason": user.suspension_reason,
            "suspendedUntil": as_utc(user.suspended_until).isoformat() if user.suspended_until else None,
        })

    return user


async def login(
    email: str,
    password: str,
    device: DeviceInfo,
    db: AsyncSession,
) -> tuple[User, dict]:
    user = await authenticate_user(email, password, device, db)
    tokens = await session_service.create_session(user.id, device, db)
    return user, tokens


# ── Password change & reset ──────────────────────────────────────────

async def change_password(
    user: User,
    current_password: str,
    new_password: str,
    device: DeviceInfo,
    db: AsyncSession,
) -> dict:
    """
    Set a new password, revoke every session of the user (including
    the calling one) and open a fresh session for the calling device.
    """
    if not verify_password(current_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    user.password_hash = hash_password(new_password)
    await db.flush()

    await session_service.revoke_all_user_sessions(user.id, RevocationReason.PASSWORD_CHANGE, db)
    return await session_service.create_session(user.id, device, db)


async def request_password_reset(email: str, db: AsyncSession) -> None:
    """
    Email a one-time reset link.  Unknown or deactivated accounts are
    ignored silently so the endpoint does not reveal which emails exist.
    """
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        logger.info("Password reset requested for unknown or inactive account")
        return

    token = generate_reset_token()
    user.password_reset_token_hash = hash_token(token)
    user.password_reset_expires_at = utcnow() + timedelta(
        minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES,
    )
    await db.flush()

    try:
        await email_service.send_password_reset_email(user.email, token)
    except aiosmtplib.SMTPException:
        # Same response as an unknown account; the failure is only logged.
        logger.exception("Password reset email to user %s could not be sent", user.id)


async def verify_reset_token(token: str, db: AsyncSession) -> User:
    """Return the user a live reset token belongs to without consuming it."""
    result = await db.execute(
        select(User).where(
            User.password_reset_token_hash == hash_token(token),
            User.password_reset_expires_at > utcnow(),
        )
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token",
        )
    return user


async def reset_password(token: str, new_password: str, db: AsyncSession) -> User:
    user = await verify_reset_token(token, db)
    user.password_hash = hash_password(new_password)
    user.password_reset_token_hash = None
    user.password_reset_expires_at = None
    await db.flush()

    await session_service.revoke_all_user_sessions(user.id, RevocationReason.PASSWORD_CHANGE, db)
    return user
