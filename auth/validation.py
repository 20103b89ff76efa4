"""
auth/validation.py -- Request body pipeline run before the register route.

Pattern: Pipeline / Chain of Responsibility. A RequestPipeline is an ordered
tuple of steps; each step takes the JSON body (a dict) and returns the body
the next step should see. A step short-circuits the whole request by raising
ValidationFailed, which the api/ exception handler renders as a 400.

Registration runs:
  1. sanitize_input        -- body must be an object; strings other than the
                              password are trimmed and stripped of HTML tags.
  2. reject_operator_keys  -- refuses query-operator style payloads
                              ({"email": {"$ne": ""}}) and dotted keys before
                              they can reach a store lookup.
  3. validate_registration -- RegisterRequest.model_validate(); returns the
                              validated model rather than a dict.

Layer rule: no FastAPI imports. The pipeline works on plain dicts so it can
be unit tested without a request. RegisterRequest lives here rather than in
api/models.py because auth/ never imports api/.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, EmailStr, Field, ValidationError

from auth.errors import ValidationFailed, field_error

Step = Callable[[Any], Any]

_TAG_RE = re.compile(r"<[^>]*>")


class RequestPipeline:
    """Run steps in order; the output of each step feeds the next."""

    def __init__(self, *steps: Step) -> None:
        self.steps = steps

    def run(self, body: Any) -> Any:
        for step in self.steps:
            body = step(body)
        return body


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        return _TAG_RE.sub("", value).strip()
    if isinstance(value, dict):
        return {k: _clean(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_clean(v) for v in value]
    return value


def sanitize_input(body: Any) -> dict:
    if not isinstance(body, dict):
        raise ValidationFailed([field_error("body", "request body must be a JSON object")])
    # Passwords are opaque; trimming or tag-stripping would change the secret.
    return {k: v if k == "password" else _clean(v) for k, v in body.items()}


def _operator_keys(value: Any, path: str) -> list[str]:
    found: list[str] = []
    if isinstance(value, dict):
        for key, child in value.items():
            child_path = f"{path}.{key}" if path else str(key)
            if str(key).startswith("$") or "." in str(key):
                found.append(child_path)
            found.extend(_operator_keys(child, child_path))
    elif isinstance(value, list):
        for i, child in enumerate(value):
            found.extend(_operator_keys(child, f"{path}[{i}]"))
    return found


def reject_operator_keys(body: dict) -> dict:
    """Refuse operator keys anywhere and nested values on top-level fields."""
    errors = [field_error(p, "operator keys are not allowed") for p in _operator_keys(body, "")]
    for key, value in body.items():
        if isinstance(value, (dict, list)):
            errors.append(field_error(str(key), "must be a scalar value"))
    if errors:
        raise ValidationFailed(errors)
    return body


class RegisterRequest(BaseModel):
    """Body of POST /register once the earlier steps have cleaned it."""

    username: str = Field(min_length=3, max_length=30, pattern=r"^[A-Za-z0-9_]+$")
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


def validate_registration(body: dict) -> RegisterRequest:
    """Field-level rules, enforced by RegisterRequest.

    pydantic's error list is mapped onto ValidationFailed so the 400 envelope
    names each failing field.
    """
    try:
        return RegisterRequest.model_validate(body)
    except ValidationError as exc:
        errors = [
            field_error(".".join(str(part) for part in err["loc"]) or "body", err["msg"])
            for err in exc.errors()
        ]
        raise ValidationFailed(errors) from None


registration_pipeline = RequestPipeline(sanitize_input, reject_operator_keys, validate_registration)
