"""
API request and response models for SimpleAuth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

UserResponse has no password field at all. Serializing a User through it is
what guarantees no response body ever carries the stored password, whatever
the store handed back.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from auth.models import User
from auth.validation import RegisterRequest  # noqa: F401  defined with the pipeline that validates it

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Body of POST /login.

    Both fields are optional at the schema level so a missing field reaches
    the route and becomes MISSING_CREDENTIALS (400) with the standard message,
    rather than a generic schema error.
    """

    email: Optional[str] = None
    password: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    role: str
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role.value,
            created_at=user.created_at,
        )


class AuthResponse(BaseModel):
    """Returned by /register (201) and /login (200)."""

    success: bool = True
    message: str
    token: str
    user: UserResponse


class ProfileResponse(BaseModel):
    success: bool = True
    user: UserResponse


class UserListResponse(BaseModel):
    success: bool = True
    count: int
    users: list[UserResponse]


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Envelope for every non-2xx response.

    error is only set for 500s (the underlying failure); errors only for
    validation failures. Both are dropped from the body when unset.
    """

    success: bool = False
    message: str
    error: Optional[str] = None
    errors: Optional[list[FieldError]] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    store: str
