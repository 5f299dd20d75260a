"""
User service — admin queries & account-state changes.

Role, suspension, activation and deletion are the only mutations here.
Each one that takes access away (suspend, deactivate, delete) also revokes
every session of the target so the change applies immediately rather
than at the next token expiry.
"""

import logging
import uuid
from datetime import timedelta

from fastapi import HTTPException, status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from codecollab.core.security_events import security_event
from codecollab.models.base import utcnow
from codecollab.models.session import RevocationReason, UserSession
from codecollab.models.user import User, UserRole
from codecollab.rbac.permissions import default_permissions_for_role, unknown_permissions
from codecollab.services import session_service

logger = logging.getLogger(__name__)


def _forbid_self(actor: User, target_user_id: uuid.UUID, action: str) -> None:
    if actor.id == target_user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"You cannot {action} your own account",
        )


async def get_user_by_id(
    user_id: uuid.UUID,
    db: AsyncSession,
) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def list_users(
    db: AsyncSession,
    role: UserRole | None = None,
    status_filter: str | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[User], int]:
    """
    Filtered, paginated user listing.

    `status_filter` is one of "active", "inactive" or "suspended".
    Returns the page and the total count matching the filters.
    """
    filters = []
    if role is not None:
        filters.append(User.role == role)
    if status_filter == "active":
        filters.append(User.is_active == True)  # noqa: E712
    elif status_filter == "inactive":
        filters.append(User.is_active == False)  # noqa: E712
    elif status_filter == "suspended":
        filters.append(User.is_suspended == True)  # noqa: E712
    if search:
        pattern = f"%{search.lower()}%"
        filters.append(or_(
            func.lower(User.username).like(pattern),
            func.lower(User.email).like(pattern),
        ))

    total = (await db.execute(select(func.count(User.id)).where(*filters))).scalar_one()

    stmt = (
        select(User)
        .where(*filters)
        .order_by(User.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def change_role(
    actor: User,
    target_user_id: uuid.UUID,
    role: UserRole,
    permissions: list[str] | None,
    db: AsyncSession,
) -> User:
    """
    Set the role.  The role's default bundle is applied unless an
    explicit permission list comes with the same call.
    """
    if role != UserRole.ADMIN:
        _forbid_self(actor, target_user_id, "demote")

    if permissions is not None:
        unknown = unknown_permissions(permissions)
        if unknown:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown permissions: {', '.join(unknown)}",
            )

    user = await get_user_by_id(target_user_id, db)
    previous = user.role
    user.role = role
    user.permissions = list(permissions) if permissions is not None else default_permissions_for_role(role)
    await db.flush()

    security_event(
        "USER_ROLE_CHANGED",
        severity="medium",
        user_id=str(user.id),
        changed_by=str(actor.id),
        previous_role=previous.value,
        new_role=role.value,
    )
    return user


async def set_suspension(
    actor: User,
    target_user_id: uuid.UUID,
    suspend: bool,
    reason: str | None,
    duration_hours: int | None,
    db: AsyncSession,
) -> User:
    """Suspend (timed when `duration_hours` is given, else indefinite) or lift."""
    if suspend:
        _forbid_self(actor, target_user_id, "suspend")

    user = await get_user_by_id(target_user_id, db)

    if suspend:
        user.is_suspended = True
        user.suspension_reason = reason
        user.suspended_until = utcnow() + timedelta(hours=duration_hours) if duration_hours else None
        await db.flush()
        revoked = await session_service.revoke_all_user_sessions(
            user.id, RevocationReason.ADMIN_REVOKE, db,
        )
        security_event(
            "USER_SUSPENDED",
            severity="medium",
            user_id=str(user.id),
            changed_by=str(actor.id),
            reason=reason,
            duration_hours=duration_hours,
            sessions_revoked=revoked,
        )
    else:
        user.is_suspended = False
        user.suspension_reason = None
        user.suspended_until = None
        await db.flush()
        security_event(
            "USER_UNSUSPENDED",
            severity="medium",
            user_id=str(user.id),
            changed_by=str(actor.id),
        )
    return user


async def set_active(
    actor: User,
    target_user_id: uuid.UUID,
    is_active: bool,
    db: AsyncSession,
) -> User:
    """Activate or deactivate an account; deactivation ends every session."""
    if not is_active:
        _forbid_self(actor, target_user_id, "deactivate")

    user = await get_user_by_id(target_user_id, db)
    user.is_active = is_active
    await db.flush()

    revoked = 0
    if not is_active:
        revoked = await session_service.revoke_all_user_sessions(
            user.id, RevocationReason.ADMIN_REVOKE, db,
        )

    security_event(
        "USER_STATUS_CHANGED",
        severity="medium",
        user_id=str(user.id),
        changed_by=str(actor.id),
        is_active=is_active,
        sessions_revoked=revoked,
    )
    return user


async def delete_user(
    actor: User,
    target_user_id: uuid.UUID,
    permanent: bool,
    db: AsyncSession,
) -> None:
    """
    Remove an account.

    By default the account is deactivated and its sessions revoked, so
    the row and its audit trail stay.  With `permanent` the user row and
    all of its session rows are deleted.
    """
    _forbid_self(actor, target_user_id, "delete")
    user = await get_user_by_id(target_user_id, db)

    if permanent:
        result = await db.execute(
            delete(UserSession)
            .where(UserSession.user_id == user.id)
            .execution_options(synchronize_session=False)
        )
        removed = result.rowcount or 0
        await db.delete(user)
        await db.flush()
    else:
        user.is_active = False
        await db.flush()
        removed = await session_service.revoke_all_user_sessions(
            user.id, RevocationReason.ADMIN_REVOKE, db,
        )

    security_event(
        "USER_DELETED",
        severity="high" if permanent else "medium",
        user_id=str(target_user_id),
        changed_by=str(actor.id),
        permanent=permanent,
        sessions_removed=removed,
    )
