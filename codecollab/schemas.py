"""
Pydantic schemas for request / response serialization.

Kept in a single file for now — split per-domain when it grows.
Schemas are deliberately decoupled from SQLAlchemy models so the
API surface can evolve independently of the DB layer.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from codecollab.core.security import MAX_PASSWORD_BYTES
from codecollab.models.user import UserRole


MAX_SUSPENSION_HOURS = 24 * 365 * 10


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
    return value


# ── Auth ─────────────────────────────────────────────────────────────
class RegisterRequest(BaseModel):
    email: EmailStr
    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_]+$")
    password: str = Field(min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    session_id: uuid.UUID
    expires_in: int
    refresh_expires_in: int


class RefreshResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# ── User ─────────────────────────────────────────────────────────────
class UserOut(BaseModel):
    id: uuid.UUID
    email: str
    username: str
    role: UserRole
    permissions: list[str] = []
    is_active: bool
    is_suspended: bool
    suspended_until: datetime | None = None
    suspension_reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    user: UserOut
    tokens: TokenResponse


class UserListResponse(BaseModel):
    users: list[UserOut]
    total: int
    skip: int
    limit: int


# ── Sessions ─────────────────────────────────────────────────────────
class SessionOut(BaseModel):
    id: uuid.UUID
    platform: str | None = None
    browser: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    created_at: datetime
    last_activity: datetime
    expires_at: datetime
    is_current: bool = False


class RevokedCountResponse(BaseModel):
    detail: str
    revoked: int


class CleanupResponse(BaseModel):
    detail: str
    deleted: int


# ── Admin ────────────────────────────────────────────────────────────
class UpdateRoleRequest(BaseModel):
    role: UserRole
    permissions: list[str] | None = None


class UpdateSuspensionRequest(BaseModel):
    suspend: bool
    reason: str | None = Field(default=None, max_length=512)
    duration_hours: int | None = Field(default=None, ge=1, le=MAX_SUSPENSION_HOURS)


class UpdateStatusRequest(BaseModel):
    is_active: bool


UserStatusFilter = Literal["active", "inactive", "suspended"]


# ── Generic ──────────────────────────────────────────────────────────
class MessageResponse(BaseModel):
    detail: str
