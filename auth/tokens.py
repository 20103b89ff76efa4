"""
auth/tokens.py -- Token issuance and password hashing utilities.

Tokens: the legacy "fake-jwt-token-<user_id>-<epoch ms>" format is kept
       byte-for-byte so clients that already hold tokens keep working. The
       token is NOT signed and carries no expiry; it is only meaningful
       because the store remembers which user it was issued to. Verification
       is the store's job (UserStore.verify_token), not this module's.

Passwords: bcrypt directly (no passlib wrapper). Used by the stores, which
       own the stored form of the password. The only check the login route
       runs itself is verify_dummy(), for emails no store record matches.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import time
from functools import lru_cache

import bcrypt

TOKEN_PREFIX = "fake-jwt-token"


def issue_token(user_id: int) -> str:
    """Return a fresh token string for user_id.

    Two issuances for the same user within the same millisecond produce the
    same string. The store keeps one token per user, so that collision only
    means the second save is a no-op.
    """
    return f"{TOKEN_PREFIX}-{user_id}-{int(time.time() * 1000)}"


# ---------------------------------------------------------------------------
# Password hashing (bcrypt)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only uses the first 72 bytes. bcrypt 4.x truncates longer input
    silently; 5.x raises ValueError instead. The registration validator allows
    up to 128 characters, so the input is truncated here explicitly and both
    versions hash the same 72-byte prefix.
    """
    return bcrypt.hashpw(plain.encode("utf-8")[:72], bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:72], hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    return hash_password("simpleauth-timing-dummy", rounds=rounds)


def verify_dummy(plain: str, rounds: int = 12) -> bool:
    """Run a full bcrypt check against a throwaway hash and return False.

    Login calls this when the email is unknown, so that path pays the same
    bcrypt cost as a wrong password and timing does not reveal which it was.
    """
    verify_password(plain, _dummy_hash(rounds))
    return False
