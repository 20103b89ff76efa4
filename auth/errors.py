"""
auth/errors.py -- The closed error taxonomy for the auth layer.

Every failure a route can produce is one AuthErrorCode. Each code maps to a
fixed HTTP status and a fixed user-facing message; the api/ exception handler
turns an AuthError into the {success: false, message, ...} envelope.

Only INTERNAL_ERROR carries a free-form detail (the underlying failure), and
only VALIDATION_FAILED carries per-field errors.

Layer rule: no imports from api/ and no FastAPI imports -- the store and the
validation pipeline raise these too.
"""

from __future__ import annotations

from enum import Enum


class AuthErrorCode(str, Enum):
    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"
    DUPLICATE_EMAIL = "duplicate_email"
    DUPLICATE_USERNAME = "duplicate_username"
    MISSING_CREDENTIALS = "missing_credentials"
    INVALID_CREDENTIALS = "invalid_credentials"
    FORBIDDEN = "forbidden"
    VALIDATION_FAILED = "validation_failed"
    INTERNAL_ERROR = "internal_error"


_STATUS: dict[AuthErrorCode, int] = {
    AuthErrorCode.MISSING_TOKEN: 401,
    AuthErrorCode.INVALID_TOKEN: 401,
    AuthErrorCode.DUPLICATE_EMAIL: 409,
    AuthErrorCode.DUPLICATE_USERNAME: 409,
    AuthErrorCode.MISSING_CREDENTIALS: 400,
    AuthErrorCode.INVALID_CREDENTIALS: 401,
    AuthErrorCode.FORBIDDEN: 403,
    AuthErrorCode.VALIDATION_FAILED: 400,
    AuthErrorCode.INTERNAL_ERROR: 500,
}

# Wrong email and wrong password share one message on purpose: the response
# must not reveal which of the two was wrong.
_MESSAGES: dict[AuthErrorCode, str] = {
    AuthErrorCode.MISSING_TOKEN: "token not provided",
    AuthErrorCode.INVALID_TOKEN: "invalid token",
    AuthErrorCode.DUPLICATE_EMAIL: "user with this email already exists",
    AuthErrorCode.DUPLICATE_USERNAME: "user with this username already exists",
    AuthErrorCode.MISSING_CREDENTIALS: "please provide email and password",
    AuthErrorCode.INVALID_CREDENTIALS: "invalid email or password",
    AuthErrorCode.FORBIDDEN: "insufficient privileges",
    AuthErrorCode.VALIDATION_FAILED: "validation failed",
    AuthErrorCode.INTERNAL_ERROR: "internal server error",
}


class AuthError(Exception):
    """A taxonomy failure with its HTTP mapping attached.

    Args:
        code:    Which taxonomy member this is.
        message: Overrides the default message. Only used for INTERNAL_ERROR,
                 where register and login report different context
                 ("registration failed" / "login failed").
        detail:  Underlying failure text (INTERNAL_ERROR only).
        errors:  Per-field validation problems (VALIDATION_FAILED only).
    """

    def __init__(
        self,
        code: AuthErrorCode,
        message: str | None = None,
        detail: str | None = None,
        errors: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.status_code = _STATUS[code]
        self.message = message or _MESSAGES[code]
        self.detail = detail
        self.errors = errors
        super().__init__(self.message)


class ValidationFailed(AuthError):
    """Raised by a validation pipeline step to short-circuit the request."""

    def __init__(self, errors: list[dict]) -> None:
        super().__init__(AuthErrorCode.VALIDATION_FAILED, errors=errors)


def field_error(field: str, message: str) -> dict:
    return {"field": field, "message": message}
