"""
api/routes/auth.py -- Registration, login, profile and user listing.

Routes:
  POST /register  -- create a member account; returns a token (201)
  POST /login     -- email + password; returns a token (200)
  GET  /profile   -- the authenticated user (requires Bearer token)
  GET  /users     -- every user (requires Bearer token + admin role)

Error policy:
  Taxonomy failures are raised as AuthError and rendered by the exception
  handler in api/main.py. register and login wrap their whole body: an
  AuthError passes through untouched, anything else becomes INTERNAL_ERROR
  (500) carrying the underlying failure text. Nothing escapes unconverted.

Handlers are plain def functions, so FastAPI runs them in its thread pool.
The store is shared across those threads; see auth/store.py for how create()
stays atomic when two registrations race.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request

from api.models import AuthResponse, LoginRequest, ProfileResponse, RegisterRequest, UserListResponse, UserResponse
from auth.dependencies import get_current_user, get_user_store, require_admin
from auth.errors import AuthError, AuthErrorCode, ValidationFailed, field_error
from auth.models import User
from auth.store import UserStore
from auth.tokens import issue_token, verify_dummy
from auth.validation import registration_pipeline
from core.config import get_settings

logger = logging.getLogger("simpleauth.auth")
_settings = get_settings()

# Auth policy:
# - POST /register: public -- body must pass registration_pipeline first
# - POST /login:    public
# - GET  /profile:  requires auth (get_current_user)
# - GET  /users:    requires admin (require_admin)
router = APIRouter()


async def registration_body(request: Request) -> RegisterRequest:
    """Parse the raw JSON body and run it through the validation pipeline.

    Runs as a dependency so a rejected payload never reaches register().
    """
    try:
        raw = await request.json()
    except ValueError:
        raise ValidationFailed([field_error("body", "request body must be valid JSON")]) from None
    return registration_pipeline.run(raw)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    body: RegisterRequest = Depends(registration_body),
    store: UserStore = Depends(get_user_store),
) -> AuthResponse:
    """Create a member account and log it in.

    The email and username checks here give the common case a clean 409.
    store.create() repeats them atomically for the concurrent case.
    """
    try:
        if store.find_by_email(body.email) is not None:
            raise AuthError(AuthErrorCode.DUPLICATE_EMAIL)

        if any(u.username == body.username for u in store.get_all()):
            raise AuthError(AuthErrorCode.DUPLICATE_USERNAME)

        user = store.create(body.username, body.email, body.password)

        token = issue_token(user.id)
        store.save_token(user.id, token)

        response = AuthResponse(
            message="user registered successfully",
            token=token,
            user=UserResponse.from_user(user),
        )
    except AuthError:
        raise
    except Exception as exc:
        logger.exception("Registration failed")
        raise AuthError(AuthErrorCode.INTERNAL_ERROR, message="registration failed", detail=str(exc)) from exc

    logger.info("Registered user %s (id=%s)", user.username, user.id)
    return response


@router.post("/login", response_model=AuthResponse)
def login(
    body: Optional[LoginRequest] = Body(default=None),
    store: UserStore = Depends(get_user_store),
) -> AuthResponse:
    """Exchange email + password for a fresh token.

    Unknown email and wrong password return the same INVALID_CREDENTIALS
    response so the caller cannot tell which one was wrong.
    """
    try:
        if body is None or not body.email or not body.password:
            raise AuthError(AuthErrorCode.MISSING_CREDENTIALS)

        user = store.find_by_email(body.email)
        if user is None:
            # Same bcrypt cost as a wrong password; do not return before hashing.
            verify_dummy(body.password, _settings.bcrypt_rounds)
        if user is None or not store.check_password(user, body.password):
            logger.info("Failed login attempt for %s", body.email)
            raise AuthError(AuthErrorCode.INVALID_CREDENTIALS)

        token = issue_token(user.id)
        store.save_token(user.id, token)

        # find_by_email() returns the stored hash. UserResponse has no
        # password field, so projecting through it drops the hash here.
        response = AuthResponse(
            message="login successful",
            token=token,
            user=UserResponse.from_user(user),
        )
    except AuthError:
        raise
    except Exception as exc:
        logger.exception("Login failed")
        raise AuthError(AuthErrorCode.INTERNAL_ERROR, message="login failed", detail=str(exc)) from exc

    logger.info("User %s logged in (id=%s)", user.username, user.id)
    return response


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/profile", response_model=ProfileResponse)
def profile(current_user: User = Depends(get_current_user)) -> ProfileResponse:
    """Return the user the Bearer token resolved to."""
    return ProfileResponse(user=UserResponse.from_user(current_user))


@router.get("/users", response_model=UserListResponse)
def list_users(
    current_user: User = Depends(require_admin),
    store: UserStore = Depends(get_user_store),
) -> UserListResponse:
    """List every registered user. Admin only."""
    users = store.get_all()
    return UserListResponse(count=len(users), users=[UserResponse.from_user(u) for u in users])
