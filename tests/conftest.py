"""
tests/conftest.py -- Shared test fixtures for SimpleAuth integration tests.

This module provides:
  - user_store: a fresh MemoryUserStore per test (cheap bcrypt cost)
  - client: TestClient whose lifespan wires user_store into app.state
  - admin_token: Bearer token for an admin created directly in the store
  - register: helper that POSTs /register and returns the response
  - sql_store / sql_client: the same wiring on SqlUserStore (sqlite :memory:)

Design: the real lifespan builds the store from Settings. Tests replace it
with _patch_lifespan() so every test sees an isolated, empty store and can
inspect it directly after making requests.

BCRYPT_ROUNDS and STORE_BACKEND must be set before any api/ import, because
api.main reads get_settings() at module load.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("STORE_BACKEND", "memory")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Role
from auth.store import MemoryUserStore, SqlUserStore, UserStore
from auth.tokens import issue_token

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> MemoryUserStore:
    return MemoryUserStore(bcrypt_rounds=4)


@pytest.fixture
def client(user_store: MemoryUserStore) -> Generator[TestClient, None, None]:
    """TestClient against the real app and routes, backed by user_store."""
    app.router.lifespan_context = _patch_lifespan(user_store)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture
def admin_token(user_store: MemoryUserStore) -> str:
    """Create an admin straight in the store (registration only makes members)."""
    admin = user_store.create("root_admin", "admin@example.com", "adminpass", role=Role.admin)
    token = issue_token(admin.id)
    user_store.save_token(admin.id, token)
    return token


@pytest.fixture
def register(client: TestClient) -> Callable[..., object]:
    def _register(username: str = "alice", email: str = "a@x.com", password: str = "p1"):
        return client.post("/register", json={"username": username, "email": email, "password": password})

    return _register


@pytest.fixture
def sql_store() -> Generator[SqlUserStore, None, None]:
    store = SqlUserStore("sqlite:///:memory:", bcrypt_rounds=4)
    yield store
    store.close()


@pytest.fixture
def sql_client(sql_store: SqlUserStore) -> Generator[TestClient, None, None]:
    """Same app as client, backed by an in-memory SQLite SqlUserStore."""
    app.router.lifespan_context = _patch_lifespan(sql_store)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
