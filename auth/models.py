"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and routes
do the work; these types only own the domain shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class Role(str, Enum):
    member = "member"
    admin = "admin"


@dataclass
class User:
    """A registered identity.

    password holds the stored (hashed) form. Stores only populate it on the
    record returned by find_by_email(), because login needs it for the
    password check. Every other store read returns password=None.
    """

    username: str
    email: str
    role: Role = Role.member
    id: int | None = None
    password: str | None = None
    created_at: str | None = None

    def without_password(self) -> User:
        return replace(self, password=None)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin
