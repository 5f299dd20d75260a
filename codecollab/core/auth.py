"""
Request authentication — resolves the presented access token to a live
session and attaches the identity to `request.state`.

Token precedence: the `accessToken` cookie first, then an
`Authorization: Bearer` header.  Nothing else on the request is
trusted as identity.

    Depends(get_current_session)  → AuthContext(user, session_id, token)
    Depends(get_current_user)     → User
"""

import logging
import uuid
from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from codecollab.core.database import get_db
from codecollab.core.exceptions import AuthenticationFailure
from codecollab.core.security_events import mask_token, security_event
from codecollab.models.user import User
from codecollab.services import session_service
from codecollab.services.session_service import DeviceInfo

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"


@dataclass
class AuthContext:
    user: User
    session_id: uuid.UUID
    token: str


def client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def device_info_from_request(request: Request) -> DeviceInfo:
    return DeviceInfo(
        user_agent=request.headers.get("user-agent"),
        ip=client_ip(request),
    )


def extract_access_token(request: Request) -> str | None:
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if token:
        return token

    scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def get_current_session(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    token = extract_access_token(request)

    if token is None:
        security_event(
            "MISSING_AUTH_TOKEN",
            severity="low",
            path=request.url.path,
            ip=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        raise AuthenticationFailure("Access token required")

    validated = await session_service.validate_session(token, db)
    if validated is None:
        security_event(
            "INVALID_AUTH_TOKEN",
            severity="medium",
            token=mask_token(token),
            path=request.url.path,
            ip=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        raise AuthenticationFailure("Invalid or expired access token")

    request.state.user = validated.user
    request.state.session_id = validated.session_id
    request.state.token = token
    return AuthContext(user=validated.user, session_id=validated.session_id, token=token)


async def get_current_user(ctx: AuthContext = Depends(get_current_session)) -> User:
    """Authenticated user without any role / permission check."""
    return ctx.user
