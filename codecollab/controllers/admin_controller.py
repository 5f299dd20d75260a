"""
Admin controller — user management & session administration.

The whole router sits behind `require_admin`; individual routes add
finer permission checks where an action is more dangerous than
reading (e.g. the manual cleanup run needs `admin.system`).
Controllers are THIN — they delegate to services and return schemas.

Architecture note:
    We inject `admin: User = Depends(require_admin)` so the controller
    has the acting admin's identity; FastAPI caches the dependency, so
    the router-level guard and the parameter resolve only once.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from codecollab.core.database import get_db
from codecollab.models.session import RevocationReason
from codecollab.models.user import User, UserRole
from codecollab.rbac.dependencies import add_debug_headers, require_admin, require_permission
from codecollab.schemas import (
    CleanupResponse,
    MessageResponse,
    UpdateRoleRequest,
    UpdateStatusRequest,
    UpdateSuspensionRequest,
    UserListResponse,
    UserOut,
    UserStatusFilter,
)
from codecollab.services import session_service, user_service

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin), Depends(add_debug_headers)],
)


# ── Users ────────────────────────────────────────────────────────────
@router.get("/users", response_model=UserListResponse)
async def list_users(
    db: AsyncSession = Depends(get_db),
    role: UserRole | None = None,
    status_filter: UserStatusFilter | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    users, total = await user_service.list_users(
        db, role=role, status_filter=status_filter, search=search, skip=skip, limit=limit,
    )
    return UserListResponse(
        users=[UserOut.model_validate(u) for u in users],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/users/{user_id}", response_model=UserOut)
async def get_user(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    return UserOut.model_validate(await user_service.get_user_by_id(user_id, db))


@router.put("/users/{user_id}/role", response_model=UserOut)
async def update_role(
    user_id: uuid.UUID,
    body: UpdateRoleRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Change role; the role's default permissions apply unless `permissions` is sent."""
    user = await user_service.change_role(admin, user_id, body.role, body.permissions, db)
    return UserOut.model_validate(user)


@router.put("/users/{user_id}/suspension", response_model=UserOut)
async def update_suspension(
    user_id: uuid.UUID,
    body: UpdateSuspensionRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_suspension(
        admin, user_id, body.suspend, body.reason, body.duration_hours, db,
    )
    return UserOut.model_validate(user)


@router.put("/users/{user_id}/status", response_model=UserOut)
async def update_status(
    user_id: uuid.UUID,
    body: UpdateStatusRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await user_service.set_active(admin, user_id, body.is_active, db)
    return UserOut.model_validate(user)


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: uuid.UUID,
    permanent: bool = Query(False),
    admin: User = Depends(require_permission("users.delete")),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate an account, or remove it outright with `?permanent=true`."""
    await user_service.delete_user(admin, user_id, permanent, db)
    return MessageResponse(detail="User deleted" if permanent else "User deactivated")


# ── Sessions ─────────────────────────────────────────────────────────
@router.delete("/sessions/{session_id}", response_model=MessageResponse)
async def revoke_session(
    session_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    revoked = await session_service.revoke_session(session_id, RevocationReason.ADMIN_REVOKE, db)
    if not revoked:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return MessageResponse(detail="Session revoked")


@router.post("/sessions/cleanup", response_model=CleanupResponse)
async def cleanup_sessions(
    admin: User = Depends(require_permission("admin.system")),
    db: AsyncSession = Depends(get_db),
):
    """Run the expired-session purge now instead of waiting for the hourly job."""
    deleted = await session_service.cleanup_expired_sessions(db)
    return CleanupResponse(detail="Cleanup complete", deleted=deleted)
