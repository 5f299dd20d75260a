"""
Auth controller — registration, login, token refresh, logout, the
caller's own sessions and password management.

Register, login, refresh and password-reset routes are PUBLIC.
Everything else requires a valid session.

Token-issuing routes also set HttpOnly cookies (`accessToken` on `/`,
`refreshToken` scoped to `/api/auth`) so browser clients never need
script access to either token.  Header-based clients use the JSON body.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from codecollab.core.auth import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    AuthContext,
    client_ip,
    device_info_from_request,
    get_current_session,
)
from codecollab.core.config import settings
from codecollab.core.database import get_db
from codecollab.core.exceptions import AuthenticationFailure
from codecollab.core.security_events import security_event
from codecollab.models.session import RevocationReason
from codecollab.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    RefreshResponse,
    RefreshTokenRequest,
    RegisterRequest,
    RevokedCountResponse,
    SessionOut,
    TokenResponse,
    UserOut,
)
from codecollab.services import auth_service, session_service

router = APIRouter(prefix="/api/auth", tags=["Auth"])

REFRESH_COOKIE_PATH = "/api/auth"


# ── Cookie helpers ───────────────────────────────────────────────────

def _set_access_cookie(response: Response, access_token: str, expires_in: int) -> None:
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        access_token,
        max_age=expires_in,
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite=settings.AUTH_COOKIE_SAMESITE,
        path="/",
    )


def _set_auth_cookies(response: Response, tokens: dict) -> None:
    _set_access_cookie(response, tokens["access_token"], tokens["expires_in"])
    response.set_cookie(
        REFRESH_TOKEN_COOKIE,
        tokens["refresh_token"],
        max_age=tokens["refresh_expires_in"],
        httponly=True,
        secure=settings.AUTH_COOKIE_SECURE,
        samesite=settings.AUTH_COOKIE_SAMESITE,
        path=REFRESH_COOKIE_PATH,
    )


def _clear_auth_cookies(response: Response) -> None:
    response.delete_cookie(ACCESS_TOKEN_COOKIE, path="/")
    response.delete_cookie(REFRESH_TOKEN_COOKIE, path=REFRESH_COOKIE_PATH)


# ── Registration & login ─────────────────────────────────────────────

@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create a `user` account and log it in straight away."""
    user = await auth_service.register_user(body.email, body.username, body.password, db)
    tokens = await session_service.create_session(user.id, device_info_from_request(request), db)
    _set_auth_cookies(response, tokens)
    return AuthResponse(user=UserOut.model_validate(user), tokens=TokenResponse(**tokens))


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Authenticate with email + password → receive a token pair."""
    user, tokens = await auth_service.login(
        body.email, body.password, device_info_from_request(request), db,
    )
    _set_auth_cookies(response, tokens)
    return AuthResponse(user=UserOut.model_validate(user), tokens=TokenResponse(**tokens))


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(
    request: Request,
    response: Response,
    body: RefreshTokenRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    """Exchange a refresh token (body or cookie) for a new access token."""
    raw = (body.refresh_token if body else None) or request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not raw:
        security_event(
            "MISSING_REFRESH_TOKEN",
            severity="low",
            path=request.url.path,
            ip=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        raise AuthenticationFailure("Refresh token required")

    result = await session_service.refresh_session(raw, device_info_from_request(request), db)
    if result is None:
        raise AuthenticationFailure("Invalid or expired refresh token")

    _set_access_cookie(response, result["access_token"], result["expires_in"])
    return RefreshResponse(**result)


# ── Logout ───────────────────────────────────────────────────────────

@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    ctx: AuthContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    """Revoke the current session (server-side logout)."""
    await session_service.revoke_session(ctx.session_id, RevocationReason.LOGOUT, db)
    _clear_auth_cookies(response)
    return MessageResponse(detail="Logged out successfully")


@router.post("/logout-all", response_model=RevokedCountResponse)
async def logout_all(
    response: Response,
    ctx: AuthContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    """Revoke every session of the caller, on every device."""
    revoked = await session_service.revoke_all_user_sessions(ctx.user.id, RevocationReason.LOGOUT, db)
    _clear_auth_cookies(response)
    return RevokedCountResponse(detail="Logged out from all devices", revoked=revoked)


# ── Current user & sessions ──────────────────────────────────────────

@router.get("/me", response_model=UserOut)
async def me(ctx: AuthContext = Depends(get_current_session)):
    return UserOut.model_validate(ctx.user)


@router.get("/sessions", response_model=list[SessionOut])
async def my_sessions(
    ctx: AuthContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    sessions = await session_service.get_user_sessions(ctx.user.id, db)
    return [SessionOut(**s, is_current=s["id"] == ctx.session_id) for s in sessions]


@router.delete("/sessions/{session_id}", response_model=MessageResponse)
async def revoke_my_session(
    session_id: uuid.UUID,
    ctx: AuthContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    """Revoke one of the caller's own sessions (e.g. a lost device)."""
    revoked = await session_service.revoke_session(
        session_id, RevocationReason.LOGOUT, db, user_id=ctx.user.id,
    )
    if not revoked:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return MessageResponse(detail="Session revoked")


# ── Passwords ────────────────────────────────────────────────────────

@router.post("/change-password", response_model=TokenResponse)
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    response: Response,
    ctx: AuthContext = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
):
    """Change password; every other session is signed out."""
    tokens = await auth_service.change_password(
        ctx.user, body.current_password, body.new_password, device_info_from_request(request), db,
    )
    _set_auth_cookies(response, tokens)
    return TokenResponse(**tokens)


@router.post("/password-reset/request", response_model=MessageResponse)
async def request_password_reset(
    body: PasswordResetRequest,
    db: AsyncSession = Depends(get_db),
):
    await auth_service.request_password_reset(body.email, db)
    return MessageResponse(detail="If that account exists, a reset link has been sent")


@router.get("/password-reset/verify/{token}", response_model=MessageResponse)
async def verify_password_reset_token(
    token: str,
    db: AsyncSession = Depends(get_db),
):
    """Lets the reset form check a link before asking for a new password."""
    await auth_service.verify_reset_token(token, db)
    return MessageResponse(detail="Reset token is valid")


@router.post("/password-reset/confirm", response_model=MessageResponse)
async def confirm_password_reset(
    body: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
):
    await auth_service.reset_password(body.token, body.new_password, db)
    return MessageResponse(detail="Password has been reset; please log in again")
