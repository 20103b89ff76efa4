"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_user_store() hands routes the store wired into app.state by the lifespan.
get_current_user() is the auth guard: it resolves the Bearer token to a User
or raises a 401 AuthError. require_admin() wraps it and raises 403 for
non-admins.

The resolved user is also stored on request.state.user so middleware and
exception handlers running later in the same request can see who it was.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.errors import AuthError, AuthErrorCode
from auth.models import User
from auth.store import UserStore


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an "Authorization: Bearer <token>" value, or None.

    The scheme is matched case-insensitively. Any other scheme, or a header
    without a token part, counts as no token at all.
    """
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def get_current_user(request: Request, store: UserStore = Depends(get_user_store)) -> User:
    """Require a valid Bearer token. Raises 401 if absent or unknown.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise AuthError(AuthErrorCode.MISSING_TOKEN)

    user = store.verify_token(token)
    if user is None:
        raise AuthError(AuthErrorCode.INVALID_TOKEN)

    request.state.user = user
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Require admin role. 401 if unauthenticated, 403 if not admin."""
    if not user.is_admin:
        raise AuthError(AuthErrorCode.FORBIDDEN)
    return user
