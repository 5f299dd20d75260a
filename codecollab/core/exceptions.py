"""
Auth failure types and the infrastructure error boundary.

- AuthenticationFailure → 401 (no / invalid / expired credentials).
- AuthorizationFailure  → 403 (role, permission, ownership, suspended
  or deactivated account).  The detail may be a dict carrying the
  required vs. current role/permission; this is for client UX and is
  not secrecy-sensitive.
- Store failures are NOT wrapped: SQLAlchemyError propagates out of
  the services and is turned into a logged 500 here.
"""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class AuthenticationFailure(HTTPException):
    def __init__(self, detail: Any = "Authentication required") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationFailure(HTTPException):
    def __init__(self, detail: Any = "Insufficient privileges") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


async def _store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error(
        "Infrastructure failure on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SQLAlchemyError, _store_error_handler)
