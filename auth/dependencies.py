"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The access token is looked up in priority order:
  1. "accessToken" cookie -- set by /login, /social-auth, and /refresh-token.
  2. Authorization: Bearer <token> header -- non-cookie clients use the token
     returned in the login response body.

A valid token is not enough on its own: the user's session record must still
exist in the session cache. The user handed to the route is rebuilt from that
snapshot, so logout takes effect on the very next request.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises Unauthenticated (401).
authorize_roles(*roles) wraps get_current_user() and raises Forbidden (403).
get_token_subject() checks the token only, for /logout.

Layer rule: no imports from api/, mail/, or media/.
  auth/dependencies.py may import from fastapi (for Depends/Request) because
  this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request

from auth.errors import AppError, Forbidden, Unauthenticated
from auth.models import User
from auth.service import AuthService
from auth.tokens import ACCESS_COOKIE


def _extract_access_token(request: Request) -> str | None:
    token: str | None = request.cookies.get(ACCESS_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def try_get_current_user(request: Request) -> User | None:
    """Resolve the caller from the access token and session cache.

    Returns the session User on success, None on any failure.
    Never raises -- callers that need a hard 401 should use get_current_user().
    """
    token = _extract_access_token(request)
    if token is None:
        return None
    service: AuthService = request.app.state.auth_service
    try:
        return service.resolve_access_token(token)
    except AppError:
        return None


def get_current_user(request: Request) -> User:
    """Require authentication. Raises Unauthenticated (401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise Unauthenticated()
    return user


def get_token_subject(request: Request) -> int:
    """Require a valid access token and return its user id, session or not.

    Used by /logout: a caller whose session is already gone still holds a
    signed token and must be able to log out again without an error.
    """
    token = _extract_access_token(request)
    if token is None:
        raise Unauthenticated()
    service: AuthService = request.app.state.auth_service
    try:
        return service.codec.decode_access_token(token)
    except AppError as exc:
        raise Unauthenticated() from exc


def authorize_roles(*roles: str) -> Callable[..., User]:
    """Build a dependency that admits only users whose role is in roles.

    Authentication runs first, so an anonymous caller gets 401, not 403.

        @router.get("/admin-only")
        async def route(user: User = Depends(authorize_roles("admin"))): ...
    """
    allowed = frozenset(roles)

    def _require_role(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise Forbidden(f"Role: {user.role} is not allowed to access this resource.")
        return user

    return _require_role
