"""
Password hashing & token helpers.

- Passwords are hashed with bcrypt directly (passlib is unmaintained
  and broken with bcrypt>=4.1).
- Access tokens are short-lived HS256 JWTs carrying the user id and a
  `type="access"` marker.  A valid signature is necessary but NOT
  sufficient: the session manager still requires a live session row
  bound to the exact token.
- Refresh tokens are opaque random strings with no embedded claims;
  they only mean something as a session-store lookup key.
- Only SHA-256 digests of either token are ever persisted.
"""

import hashlib
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from codecollab.core.config import settings

logger = logging.getLogger(__name__)

ACCESS_TOKEN_LIFETIME = timedelta(minutes=15)
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_BYTES = 64  # 512 bits
MAX_PASSWORD_BYTES = 72  # bcrypt input limit


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Password hashing ────────────────────────────────────────────────


def hash_password(plain: str) -> str:
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    # bcrypt only reads the first 72 bytes; longer input can never match.
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


# ── Token hashing ───────────────────────────────────────────────────


def hash_token(token: str) -> str:
    """SHA-256 hash, suitable for high-entropy tokens like JWTs."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# ── Access tokens (JWT) ──────────────────────────────────────────────


def issue_access_token(user_id: uuid.UUID | str, issued_at: datetime | None = None) -> str:
    """Sign a 15-minute access token for `user_id`.

    `jti` makes every token unique even when two are minted for the
    same user within the same second.
    """
    iat = issued_at or _now()
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "type": ACCESS_TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": iat,
        "exp": iat + ACCESS_TOKEN_LIFETIME,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Verify signature, expiry and token type.

    Returns the claims, or None for any tampered, expired or
    wrong-type token.
    """
    try:
        # Expiry is checked below against _now() so every clock read
        # in this module goes through one place.
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError:
        return None

    exp = payload.get("exp")
    if not isinstance(exp, (int, float)) or _now().timestamp() >= exp:
        logger.debug("Access token expired")
        return None

    if payload.get("type") != ACCESS_TOKEN_TYPE or not payload.get("sub"):
        return None
    return payload


# ── Refresh tokens (opaque) ──────────────────────────────────────────


def issue_refresh_token() -> str:
    return secrets.token_hex(REFRESH_TOKEN_BYTES)


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)
