"""
auth/store.py -- User-data persistence behind a single interface.

Pattern: Repository. UserStore is the protocol the routes and the auth guard
depend on; MemoryUserStore and SqlUserStore are interchangeable
implementations. Route code never touches dicts or SQL directly, so swapping
the in-process store for a transactional database is a config change
(STORE_BACKEND), not a code change.

Uniqueness:
  Username and email are unique. The register route checks both before
  calling create(), but that check-then-act sequence races under concurrent
  requests (handlers run in a thread pool). create() therefore re-checks
  atomically -- under a lock in MemoryUserStore, via UNIQUE constraints in
  SqlUserStore -- and raises the same DUPLICATE_* AuthError the route would.

Passwords:
  Only find_by_email() returns the stored hash (login needs it). Every other
  read hands out User.without_password().

Tokens:
  One live token per user. save_token() replaces the previous one, so a new
  login invalidates the token from the last login.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from auth.errors import AuthError, AuthErrorCode
from auth.models import Role, User
from auth.tokens import hash_password, verify_password
from core.config import Settings

logger = logging.getLogger("simpleauth.store")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


@runtime_checkable
class UserStore(Protocol):
    def find_by_email(self, email: str) -> User | None: ...

    def get_all(self) -> list[User]: ...

    def create(self, username: str, email: str, password: str, role: Role = Role.member) -> User: ...

    def check_password(self, user: User, password: str) -> bool: ...

    def save_token(self, user_id: int, token: str) -> None: ...

    def verify_token(self, token: str) -> User | None: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class MemoryUserStore:
    """Process-local store. Everything is lost on restart.

    Usage:
        store = MemoryUserStore()
        user = store.create("alice", "a@x.com", "secret")
        store.save_token(user.id, "tok")
        store.verify_token("tok")  # -> User(username="alice", ...)
    """

    def __init__(self, bcrypt_rounds: int = 12) -> None:
        self._rounds = bcrypt_rounds
        self._lock = threading.Lock()
        self._users: dict[int, User] = {}
        self._token_owner: dict[str, int] = {}
        self._user_token: dict[int, str] = {}
        self._next_id = 1

    def find_by_email(self, email: str) -> User | None:
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return replace(user)
        return None

    def get_all(self) -> list[User]:
        with self._lock:
            return [u.without_password() for u in self._users.values()]

    def create(self, username: str, email: str, password: str, role: Role = Role.member) -> User:
        # bcrypt is slow on purpose; keep it outside the lock.
        hashed = hash_password(password, self._rounds)
        with self._lock:
            for existing in self._users.values():
                if existing.email == email:
                    raise AuthError(AuthErrorCode.DUPLICATE_EMAIL)
                if existing.username == username:
                    raise AuthError(AuthErrorCode.DUPLICATE_USERNAME)
            user = User(
                id=self._next_id,
                username=username,
                email=email,
                password=hashed,
                role=role,
                created_at=_now_iso(),
            )
            self._users[user.id] = user
            self._next_id += 1
        logger.debug("Created user id=%d", user.id)
        return user.without_password()

    def check_password(self, user: User, password: str) -> bool:
        hashed = user.password
        if hashed is None:
            with self._lock:
                stored = self._users.get(user.id)
            hashed = stored.password if stored else None
        if hashed is None:
            return False
        return verify_password(password, hashed)

    def save_token(self, user_id: int, token: str) -> None:
        with self._lock:
            previous = self._user_token.pop(user_id, None)
            if previous is not None:
                self._token_owner.pop(previous, None)
            self._user_token[user_id] = token
            self._token_owner[token] = user_id

    def verify_token(self, token: str) -> User | None:
        with self._lock:
            user_id = self._token_owner.get(token)
            user = self._users.get(user_id) if user_id is not None else None
            return user.without_password() if user else None

    def close(self) -> None:
        with self._lock:
            self._users.clear()
            self._token_owner.clear()
            self._user_token.clear()


# ---------------------------------------------------------------------------
# SQLAlchemy Core implementation
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(30), nullable=False, unique=True),
    Column("email", String(254), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("role", String(10), nullable=False, server_default=Role.member.value),
    Column("created_at", String(32), nullable=False),
)

_tokens = Table(
    "tokens",
    _metadata,
    # user_id as primary key enforces one live token per user.
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("token", String(255), nullable=False, unique=True),
    Column("issued_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class SqlUserStore:
    """Store backed by any SQLAlchemy-supported database.

    All queries use bound parameters. No f-strings in SQL.

    Usage:
        store = SqlUserStore("sqlite:///simpleauth.db")
        user = store.create("alice", "a@x.com", "secret")
        store.close()
    """

    def __init__(self, db_url: str, bcrypt_rounds: int = 12) -> None:
        self._rounds = bcrypt_rounds
        in_memory = db_url.startswith("sqlite") and ":memory:" in db_url
        engine_args: dict = {}
        if db_url.startswith("sqlite"):
            engine_args["connect_args"] = {"check_same_thread": False}
        if in_memory:
            # Every new :memory: connection is a new, empty database. Handlers
            # run on pool threads, so all of them must share one connection.
            engine_args["poolclass"] = StaticPool
        self.engine: Engine = create_engine(db_url, **engine_args)
        if db_url.startswith("sqlite") and not in_memory:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def find_by_email(self, email: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row, with_password=True) if row is not None else None

    def get_all(self) -> list[User]:
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    def create(self, username: str, email: str, password: str, role: Role = Role.member) -> User:
        """Insert a new user and return it without the password.

        The UNIQUE constraints make this atomic. On IntegrityError the email
        is looked up again to tell the caller which constraint fired.
        """
        created_at = _now_iso()
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=username,
                        email=email,
                        password=hash_password(password, self._rounds),
                        role=role.value,
                        created_at=created_at,
                    )
                )
                user_id = result.inserted_primary_key[0]
        except IntegrityError:
            if self.find_by_email(email) is not None:
                raise AuthError(AuthErrorCode.DUPLICATE_EMAIL) from None
            raise AuthError(AuthErrorCode.DUPLICATE_USERNAME) from None
        logger.debug("Created user id=%d", user_id)
        return User(id=user_id, username=username, email=email, role=role, created_at=created_at)

    def check_password(self, user: User, password: str) -> bool:
        hashed = user.password
        if hashed is None:
            with self.engine.connect() as conn:
                hashed = conn.execute(select(_users.c.password).where(_users.c.id == user.id)).scalar()
        if hashed is None:
            return False
        return verify_password(password, hashed)

    def save_token(self, user_id: int, token: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(_tokens.delete().where(_tokens.c.user_id == user_id))
            conn.execute(_tokens.insert().values(user_id=user_id, token=token, issued_at=_now_iso()))

    def verify_token(self, token: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().join(_tokens, _tokens.c.user_id == _users.c.id).where(_tokens.c.token == token)
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def close(self) -> None:
        self.engine.dispose()


def _row_to_user(row, with_password: bool = False) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        password=row.password if with_password else None,
        role=Role(row.role),
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_store(settings: Settings) -> UserStore:
    """Build the store selected by STORE_BACKEND."""
    if settings.store_backend == "sql":
        return SqlUserStore(settings.database_url, bcrypt_rounds=settings.bcrypt_rounds)
    return MemoryUserStore(bcrypt_rounds=settings.bcrypt_rounds)
