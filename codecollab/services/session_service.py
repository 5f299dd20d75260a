"""
Session service — every lifecycle transition of a login session.

Handles:
- Creating sessions (with per-user concurrent-session limits)
- Refreshing access tokens from a refresh token (no rotation)
- Validating an access token against the session registry
- Revoking one / all sessions of a user
- Listing a user's live sessions (token digests never selected)
- Purging expired and long-revoked sessions

Failure semantics: "no such session", "expired" and the like return
None / False; store errors propagate unchanged to the caller.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from codecollab.core import security
from codecollab.core.config import settings
from codecollab.core.security_events import mask_token, security_event, session_event
from codecollab.models.base import utcnow
from codecollab.models.session import RevocationReason, UserSession
from codecollab.models.user import User

logger = logging.getLogger(__name__)

# Explicit read-model for "my sessions": never add the token columns here.
SESSION_SUMMARY_COLUMNS = (
    UserSession.id,
    UserSession.platform,
    UserSession.browser,
    UserSession.user_agent,
    UserSession.ip_address,
    UserSession.created_at,
    UserSession.last_activity,
    UserSession.expires_at,
)

_PLATFORM_MARKERS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("android",), "Android"),
    (("iphone", "ipad"), "iOS"),
    (("windows",), "Windows"),
    (("macintosh", "mac os x"), "macOS"),
    (("linux",), "Linux"),
)

_BROWSER_MARKERS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("edg/", "edge"), "Edge"),
    (("chrome",), "Chrome"),
    (("firefox",), "Firefox"),
    (("safari",), "Safari"),
)


@dataclass
class DeviceInfo:
    user_agent: str | None = None
    ip: str | None = None


@dataclass
class ValidatedSession:
    user: User
    session_id: uuid.UUID


# ── Device descriptor ────────────────────────────────────────────────

def _match_label(user_agent: str | None, markers: tuple[tuple[tuple[str, ...], str], ...]) -> str:
    ua = (user_agent or "").lower()
    for needles, label in markers:
        if any(needle in ua for needle in needles):
            return label
    return "Unknown"


def extract_platform(user_agent: str | None) -> str:
    return _match_label(user_agent, _PLATFORM_MARKERS)


def extract_browser(user_agent: str | None) -> str:
    return _match_label(user_agent, _BROWSER_MARKERS)


def _live(now: datetime) -> tuple:
    """WHERE clauses for an active, unexpired session."""
    return (
        UserSession.is_active == True,  # noqa: E712
        UserSession.expires_at > now,
    )


# ── Concurrency limit ────────────────────────────────────────────────

async def count_active_sessions(user_id: uuid.UUID, db: AsyncSession) -> int:
    stmt = select(func.count(UserSession.id)).where(
        UserSession.user_id == user_id,
        *_live(utcnow()),
    )
    return (await db.execute(stmt)).scalar_one()


async def enforce_concurrent_session_limit(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> int:
    """
    Make room for one more session by revoking the least recently
    active ones.

    Normally evicts a single session; if a race between simultaneous
    logins left the user above the limit, the overshoot is evicted too.
    Returns the number of sessions revoked.
    """
    limit = max(1, settings.MAX_CONCURRENT_SESSIONS)
    active_count = await count_active_sessions(user_id, db)
    if active_count < limit:
        return 0

    stmt = (
        select(UserSession.id)
        .where(UserSession.user_id == user_id, *_live(utcnow()))
        .order_by(UserSession.last_activity.asc())
        .limit(active_count - limit + 1)
    )
    oldest_ids = list((await db.execute(stmt)).scalars().all())

    revoked = 0
    for session_id in oldest_ids:
        if await revoke_session(session_id, RevocationReason.CONCURRENT_LIMIT, db):
            revoked += 1
            session_event(
                "limit_enforced",
                user_id=str(user_id),
                revoked_session_id=str(session_id),
                active_count=active_count,
            )
    return revoked


# ── Create / refresh / validate ──────────────────────────────────────

async def create_session(
    user_id: uuid.UUID,
    device: DeviceInfo | None,
    db: AsyncSession,
) -> dict[str, Any]:
    """Open a session for `user_id` and return its token pair."""
    device = device or DeviceInfo()
    await enforce_concurrent_session_limit(user_id, db)

    now = utcnow()
    access_token = security.issue_access_token(user_id)
    refresh_token = security.issue_refresh_token()
    refresh_lifetime = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

    session = UserSession(
        id=uuid.uuid4(),
        user_id=user_id,
        access_token_hash=security.hash_token(access_token),
        refresh_token_hash=security.hash_token(refresh_token),
        is_active=True,
        user_agent=device.user_agent,
        ip_address=device.ip,
        platform=extract_platform(device.user_agent),
        browser=extract_browser(device.user_agent),
        last_activity=now,
        expires_at=now + refresh_lifetime,
    )
    db.add(session)
    await db.flush()

    session_event(
        "created",
        user_id=str(user_id),
        session_id=str(session.id),
        ip=device.ip,
        user_agent=device.user_agent,
    )

    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "session_id": session.id,
        "expires_in": int(security.ACCESS_TOKEN_LIFETIME.total_seconds()),
        "refresh_expires_in": int(refresh_lifetime.total_seconds()),
    }


async def refresh_session(
    refresh_token: str,
    device: DeviceInfo | None,
    db: AsyncSession,
) -> dict[str, Any] | None:
    """
    Mint a new access token from a refresh token.

    The refresh token itself is NOT rotated: it stays valid until its
    own expiry or revocation.  The previous access token is superseded
    because the session now points at the new one.
    """
    device = device or DeviceInfo()
    now = utcnow()
    stmt = select(UserSession).where(
        UserSession.refresh_token_hash == security.hash_token(refresh_token),
        *_live(now),
    )
    session = (await db.execute(stmt)).scalar_one_or_none()

    if session is None:
        security_event(
            "INVALID_REFRESH_TOKEN",
            severity="medium",
            refresh_token=mask_token(refresh_token),
            ip=device.ip,
            user_agent=device.user_agent,
        )
        return None

    access_token = security.issue_access_token(session.user_id)
    session.access_token_hash = security.hash_token(access_token)
    session.last_activity = now
    await db.flush()

    session_event(
        "refreshed",
        user_id=str(session.user_id),
        session_id=str(session.id),
        ip=device.ip,
    )

    return {
        "access_token": access_token,
        "expires_in": int(security.ACCESS_TOKEN_LIFETIME.total_seconds()),
    }


async def validate_session(
    access_token: str,
    db: AsyncSession,
) -> ValidatedSession | None:
    """
    Resolve an access token to its user and session.

    1. Signature, expiry and token type (no DB round trip).
    2. A live session row bound to this exact token, so a revoked or
       superseded session rejects a token whose signature is still good.

    On success `last_activity` is bumped (committed with the request).
    """
    claims = security.decode_access_token(access_token)
    if claims is None:
        return None

    try:
        user_id = uuid.UUID(str(claims["sub"]))
    except ValueError:
        return None

    now = utcnow()
    stmt = (
        select(UserSession, User)
        .join(User, User.id == UserSession.user_id)
        .where(
            UserSession.access_token_hash == security.hash_token(access_token),
            UserSession.user_id == user_id,
            *_live(now),
        )
    )
    row = (await db.execute(stmt)).one_or_none()
    if row is None:
        return None

    session, user = row
    session.last_activity = now
    await db.flush()
    return ValidatedSession(user=user, session_id=session.id)


# ── Revocation ───────────────────────────────────────────────────────

async def revoke_session(
    session_id: uuid.UUID,
    reason: RevocationReason | str,
    db: AsyncSession,
    *,
    user_id: uuid.UUID | None = None,
) -> bool:
    """
    Revoke a single session.

    Idempotent: only an active row is flipped, so a second call keeps
    the first call's `revoked_at` / `revoked_reason` and returns False.
    Pass `user_id` to restrict the revoke to that user's own sessions.
    """
    reason = RevocationReason(reason)
    stmt = (
        update(UserSession)
        .where(
            UserSession.id == session_id,
            UserSession.is_active == True,  # noqa: E712
        )
        .values(is_active=False, revoked_at=utcnow(), revoked_reason=reason)
    )
    if user_id is not None:
        stmt = stmt.where(UserSession.user_id == user_id)

    result = await db.execute(stmt)
    await db.flush()

    if result.rowcount == 0:
        return False

    session_event("revoked", session_id=str(session_id), reason=reason.value)
    return True


async def revoke_all_user_sessions(
    user_id: uuid.UUID,
    reason: RevocationReason | str,
    db: AsyncSession,
) -> int:
    """
    Revoke every active session for a given user.

    Returns the number of rows actually flipped.
    Used after password changes and by admin suspend / deactivate.
    """
    reason = RevocationReason(reason)
    stmt = (
        update(UserSession)
        .where(
            UserSession.user_id == user_id,
            UserSession.is_active == True,  # noqa: E712
        )
        .values(is_active=False, revoked_at=utcnow(), revoked_reason=reason)
    )
    result = await db.execute(stmt)
    await db.flush()

    session_event("all_revoked", user_id=str(user_id), reason=reason.value, count=result.rowcount)
    return result.rowcount


# ── Queries & maintenance ────────────────────────────────────────────

async def get_user_sessions(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> list[dict[str, Any]]:
    """Live sessions for a user, most recently active first."""
    stmt = (
        select(*SESSION_SUMMARY_COLUMNS)
        .where(UserSession.user_id == user_id, *_live(utcnow()))
        .order_by(UserSession.last_activity.desc())
    )
    result = await db.execute(stmt)
    return [dict(row) for row in result.mappings().all()]


async def cleanup_expired_sessions(db: AsyncSession) -> int:
    """
    Delete sessions past their expiry, and revoked sessions older than
    the retention window.

    Only terminal rows are touched, so this is safe to run alongside
    live logins and validations.
    """
    now = utcnow()
    retention_cutoff = now - timedelta(days=settings.REVOKED_SESSION_RETENTION_DAYS)
    stmt = (
        delete(UserSession)
        .where(
            or_(
                UserSession.expires_at < now,
                and_(
                    UserSession.is_active == False,  # noqa: E712
                    UserSession.revoked_at < retention_cutoff,
                ),
            )
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.flush()

    logger.info("Cleaned up expired sessions: %d deleted", result.rowcount)
    return result.rowcount
