"""
RBAC dependencies — the heart of permission enforcement.

Each guard is a *dependency factory*: instantiate it with what the
route requires and it returns a FastAPI dependency that will:

1. Resolve the caller's session (via `get_current_session`).
2. Reject suspended or deactivated accounts (role / permission guards).
3. Check role, permission, ownership or resource access.
4. Emit exactly one security event and raise 401/403 on denial.  The
   403 body names what was required vs. what the caller holds; this
   is for client UX and is not secrecy-sensitive.

Usage in a route:
    @router.get("/items", dependencies=[Depends(require_permission("projects.read"))])
    async def list_items(...): ...

Or inject the user object:
    @router.get("/me")
    async def me(user: User = Depends(require_role("moderator", "admin"))): ...

Every guard also exposes `check(user, request)` so the rule can be
exercised without going through the dependency graph.
"""

import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any, Union

from fastapi import Depends, Request, Response

from codecollab.core.auth import AuthContext, client_ip, get_current_session
from codecollab.core.config import settings
from codecollab.core.exceptions import AuthenticationFailure, AuthorizationFailure
from codecollab.core.security_events import security_event
from codecollab.models.base import as_utc
from codecollab.models.user import User, UserRole

logger = logging.getLogger(__name__)

OwnerExtractor = Callable[[Request], Union[Any, Awaitable[Any]]]


# ── Shared helpers ───────────────────────────────────────────────────

def _flatten(values: tuple) -> list:
    flat: list = []
    for value in values:
        if isinstance(value, (list, tuple, set, frozenset)):
            flat.extend(value)
        else:
            flat.append(value)
    return flat


def _audit(event: str, user: User | None, request: Request, **details: Any) -> None:
    security_event(
        event,
        severity="medium",
        user_id=str(user.id) if user is not None else None,
        path=request.url.path,
        method=request.method,
        user_agent=request.headers.get("user-agent"),
        ip=client_ip(request),
        **details,
    )


def _require_identity(user: User | None, request: Request) -> User:
    if user is None:
        _audit("RBAC_NO_USER", None, request)
        raise AuthenticationFailure("Authentication required")
    return user


def _require_usable_account(user: User | None, request: Request) -> User:
    """Identity present, not currently suspended, not deactivated."""
    user = _require_identity(user, request)

    if user.is_currently_suspended():
        until = as_utc(user.suspended_until).isoformat() if user.suspended_until else None
        _audit(
            "SUSPENDED_USER_ACCESS_ATTEMPT",
            user,
            request,
            reason=user.suspension_reason,
            suspended_until=until,
        )
        raise AuthorizationFailure({
            "message": "Account suspended",
            "reason": user.suspension_reason,
            "suspendedUntil": until,
        })

    if not user.is_active:
        _audit("INACTIVE_USER_ACCESS_ATTEMPT", user, request)
        raise AuthorizationFailure({"message": "Account deactivated"})

    return user


def _same_id(left: Any, right: Any) -> bool:
    try:
        return uuid.UUID(str(left)) == uuid.UUID(str(right))
    except ValueError:
        return str(left) == str(right)


async def _resolve_owner(get_owner_id: OwnerExtractor, request: Request) -> Any:
    owner_id = get_owner_id(request)
    if inspect.isawaitable(owner_id):
        owner_id = await owner_id
    return owner_id


def path_param(name: str) -> OwnerExtractor:
    """Owner extractor reading a path parameter, e.g. `{user_id}`."""

    def _extract(request: Request) -> Any:
        return request.path_params.get(name)

    return _extract


# ── Guards ───────────────────────────────────────────────────────────

class require_role:
    """
    Allow only the given role(s).

        Depends(require_role("admin"))
        Depends(require_role(["moderator", "admin"]))
    """

    def __init__(self, *roles: UserRole | str | list):
        self.roles = [UserRole(r) for r in _flatten(roles)]

    async def check(self, user: User | None, request: Request) -> User:
        user = _require_usable_account(user, request)

        if user.role not in self.roles:
            required = [r.value for r in self.roles]
            _audit("RBAC_ROLE_DENIED", user, request, required=required, actual=user.role.value)
            raise AuthorizationFailure({
                "message": "Insufficient role",
                "required": required,
                "current": user.role.value,
            })
        return user

    async def __call__(
        self,
        request: Request,
        ctx: AuthContext = Depends(get_current_session),
    ) -> User:
        return await self.check(ctx.user, request)


class require_permission:
    """
    Allow callers holding ANY of the codes (default) or ALL of them.

        Depends(require_permission("projects.read"))
        Depends(require_permission(["users.update", "users.delete"], require_all=True))
    """

    def __init__(self, *permissions: str | list, require_all: bool = False):
        self.permissions = _flatten(permissions)
        self.require_all = require_all

    def _granted(self, user: User) -> bool:
        held = set(user.permissions or [])
        if self.require_all:
            return all(p in held for p in self.permissions)
        return any(p in held for p in self.permissions)

    async def check(self, user: User | None, request: Request) -> User:
        user = _require_usable_account(user, request)

        if not self._granted(user):
            current = list(user.permissions or [])
            _audit(
                "RBAC_PERMISSION_DENIED",
                user,
                request,
                required=self.permissions,
                actual=current,
                require_all=self.require_all,
            )
            raise AuthorizationFailure({
                "message": "Insufficient permissions",
                "required": self.permissions,
                "current": current,
                "requireAll": self.require_all,
            })
        return user

    async def __call__(
        self,
        request: Request,
        ctx: AuthContext = Depends(get_current_session),
    ) -> User:
        return await self.check(ctx.user, request)


class require_ownership_or_admin:
    """
    Admins pass; everyone else must own the resource.

    `get_owner_id(request)` may be sync or async and returns the id of
    the resource owner (or None when there is no such resource).
    """

    def __init__(self, get_owner_id: OwnerExtractor):
        self.get_owner_id = get_owner_id

    async def check(self, user: User | None, request: Request) -> User:
        user = _require_identity(user, request)
        if user.is_admin:
            return user

        owner_id = await _resolve_owner(self.get_owner_id, request)
        if owner_id is None or not _same_id(owner_id, user.id):
            _audit(
                "RBAC_OWNERSHIP_DENIED",
                user,
                request,
                resource_owner_id=str(owner_id) if owner_id is not None else None,
                actual=user.role.value,
            )
            raise AuthorizationFailure({"message": "Access denied: not the resource owner"})
        return user

    async def __call__(
        self,
        request: Request,
        ctx: AuthContext = Depends(get_current_session),
    ) -> User:
        return await self.check(ctx.user, request)


class require_resource_access:
    """
    `permission` grants access; failing that, owning the resource does
    (when `allow_owner`); otherwise 403.
    """

    def __init__(
        self,
        permission: str,
        get_owner_id: OwnerExtractor | None = None,
        allow_owner: bool = True,
    ):
        self.permission = permission
        self.get_owner_id = get_owner_id
        self.allow_owner = allow_owner

    async def check(self, user: User | None, request: Request) -> User:
        user = _require_identity(user, request)
        if user.has_permission(self.permission):
            return user

        if self.allow_owner and self.get_owner_id is not None:
            owner_id = await _resolve_owner(self.get_owner_id, request)
            if owner_id is not None and _same_id(owner_id, user.id):
                return user

        _audit(
            "RBAC_RESOURCE_ACCESS_DENIED",
            user,
            request,
            required=self.permission,
            actual=list(user.permissions or []),
            allow_owner=self.allow_owner,
        )
        raise AuthorizationFailure({
            "message": "Insufficient permissions for this resource",
            "required": self.permission,
        })

    async def __call__(
        self,
        request: Request,
        ctx: AuthContext = Depends(get_current_session),
    ) -> User:
        return await self.check(ctx.user, request)


require_admin = require_role(UserRole.ADMIN)
require_moderator = require_role([UserRole.MODERATOR, UserRole.ADMIN])


async def add_debug_headers(request: Request, response: Response) -> None:
    """Expose the caller's role and permissions as headers in DEBUG mode.

    Place after an auth dependency so `request.state.user` is set.
    """
    if not settings.DEBUG:
        return
    user = getattr(request.state, "user", None)
    if user is None:
        return
    response.headers["X-User-Role"] = user.role.value
    response.headers["X-User-Permissions"] = ",".join(user.permissions or [])
    response.headers["X-User-ID"] = str(user.id)
