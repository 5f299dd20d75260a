"""
Models package — import every model so SQLAlchemy's Base.metadata
knows about all tables (critical for `create_all` / Alembic).
"""

from codecollab.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from codecollab.models.session import RevocationReason, UserSession
from codecollab.models.user import User, UserRole

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "User",
    "UserRole",
    "UserSession",
    "RevocationReason",
]
