"""
User controller — per-user session management.

Listing is allowed to the owner or an admin.  Bulk revocation is
allowed to holders of `users.update` or to the owner themselves.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from codecollab.core.database import get_db
from codecollab.models.session import RevocationReason
from codecollab.models.user import User
from codecollab.rbac.dependencies import (
    path_param,
    require_ownership_or_admin,
    require_resource_access,
)
from codecollab.schemas import RevokedCountResponse, SessionOut
from codecollab.services import session_service

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/{user_id}/sessions", response_model=list[SessionOut])
async def list_user_sessions(
    user_id: uuid.UUID,
    user: User = Depends(require_ownership_or_admin(path_param("user_id"))),
    db: AsyncSession = Depends(get_db),
):
    sessions = await session_service.get_user_sessions(user_id, db)
    return [SessionOut(**s) for s in sessions]


@router.delete("/{user_id}/sessions", response_model=RevokedCountResponse)
async def revoke_user_sessions(
    user_id: uuid.UUID,
    user: User = Depends(require_resource_access("users.update", path_param("user_id"))),
    db: AsyncSession = Depends(get_db),
):
    """Sign the user out everywhere."""
    reason = RevocationReason.LOGOUT if user.id == user_id else RevocationReason.ADMIN_REVOKE
    revoked = await session_service.revoke_all_user_sessions(user_id, reason, db)
    return RevokedCountResponse(detail="Sessions revoked", revoked=revoked)
