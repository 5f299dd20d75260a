"""
User model.

Design decisions:
- Role is a single ENUM column (user → moderator → admin); the explicit
  permission set lives next to it as a JSON list of permission codes.
- Changing the role does NOT touch permissions by itself; callers
  decide whether to apply `default_permissions_for_role` at the point
  of the change (see `user_service.change_role`).
- Suspension has two modes: indefinite (no `suspended_until`) and
  timed (suspended only while now < `suspended_until`).
"""

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from codecollab.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, as_utc, utcnow


class UserRole(str, enum.Enum):
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    username: Mapped[str] = mapped_column(String(30), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(512), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        default=UserRole.USER,
        nullable=False,
        index=True,
    )
    permissions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # ── Account status ───────────────────────────────────────────────
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    is_suspended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    suspended_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    suspension_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)

    # ── Password reset ───────────────────────────────────────────────
    password_reset_token_hash: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True,
    )
    password_reset_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def has_permission(self, permission: str) -> bool:
        return permission in (self.permissions or [])

    def has_any_permission(self, permissions: list[str]) -> bool:
        return any(self.has_permission(p) for p in permissions)

    def is_currently_suspended(self, now: datetime | None = None) -> bool:
        if not self.is_suspended:
            return False
        if self.suspended_until is None:
            return True
        return (now or utcnow()) < as_utc(self.suspended_until)

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role.value}>"
