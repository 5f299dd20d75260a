"""
User session model — one row per logged-in device/browser.

Tracks login sessions per user, enabling:
- Server-side revocation of a still-unexpired access token
- Per-user concurrent-session limits (least recently active evicted)
- Device listing for the "active sessions" screen

Neither token is stored: both columns hold SHA-256 digests and every
lookup hashes the presented token first.

Revocation is terminal. A revoked row is never reactivated; the
cleanup job deletes it once it is older than the retention window.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from codecollab.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow


class RevocationReason(str, enum.Enum):
    LOGOUT = "logout"
    PASSWORD_CHANGE = "password_change"
    ADMIN_REVOKE = "admin_revoke"
    SECURITY_BREACH = "security_breach"
    EXPIRED = "expired"
    CONCURRENT_LIMIT = "concurrent_limit"


class UserSession(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "user_sessions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    refresh_token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    # ── Device descriptor ────────────────────────────────────────────
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)  # IPv6
    platform: Mapped[str] = mapped_column(String(32), default="Unknown", nullable=False)
    browser: Mapped[str] = mapped_column(String(32), default="Unknown", nullable=False)

    last_activity: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        index=True,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    # ── Revocation ───────────────────────────────────────────────────
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_reason: Mapped[RevocationReason | None] = mapped_column(
        Enum(
            RevocationReason,
            name="session_revocation_reason",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_user_sessions_user_active", "user_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<UserSession user={self.user_id} platform={self.platform} active={self.is_active}>"
