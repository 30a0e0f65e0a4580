"""
tests/conftest.py -- Shared test fixtures for Taskboard tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + tasks
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - stores: (user_store, task_store) on a fresh database
  - actors: one admin, editor and viewer with ready-made Authorization headers
  - user_factory: creates further users on demand
  - client: TestClient against the real app using the stores above

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process. Each test
gets a fresh name, so nothing leaks between tests.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from unittest.mock import MagicMock

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from tasks.store import TaskStore

TEST_PASSWORD = "testpass123"

# bcrypt is slow on purpose; hash once per session.
_TEST_HASH = hash_password(TEST_PASSWORD)


@dataclass
class Actor:
    id: int
    email: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@dataclass
class Actors:
    admin: Actor
    editor: Actor
    viewer: Actor


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, TaskStore]:
    """Create stores sharing one named shared-memory SQLite database.

    Args:
        db_suffix: Unique string appended to the DB name so tests don't share state.
    """
    url = f"sqlite:///file:test_taskboard_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), TaskStore(db_url=url)


def _patch_lifespan(user_store: UserStore, task_store: TaskStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.task_store = task_store
        app.state.oauth = MagicMock()
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def make_user(store: UserStore, email: str, roles: list[str], name: str | None = None) -> Actor:
    """Create a user with TEST_PASSWORD and return it with a fresh token."""
    uid = store.create_user(
        User(name=name or email.split("@")[0], email=email, roles=roles, hashed_password=_TEST_HASH)
    )
    return Actor(id=uid, email=email, token=create_access_token(uid, email, roles))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stores() -> Generator[tuple[UserStore, TaskStore], None, None]:
    user_store, task_store = _make_test_stores(uuid.uuid4().hex)
    yield user_store, task_store
    task_store.close()
    user_store.close()


@pytest.fixture
def actors(stores: tuple[UserStore, TaskStore]) -> Actors:
    user_store, _ = stores
    return Actors(
        admin=make_user(user_store, "admin@example.com", ["admin"], "Admin"),
        editor=make_user(user_store, "editor@example.com", ["editor"], "Editor"),
        viewer=make_user(user_store, "viewer@example.com", ["viewer"], "Viewer"),
    )


@pytest.fixture
def client(stores: tuple[UserStore, TaskStore], actors: Actors) -> Generator[TestClient, None, None]:
    """TestClient on the real app with a patched lifespan and fresh rate-limit counters.

    Depends on `actors` so the three standard users exist before the first request.
    """
    user_store, task_store = stores
    limiter.reset()
    app.router.lifespan_context = _patch_lifespan(user_store, task_store)
    with TestClient(app, raise_server_exceptions=True) as test_client:
        yield test_client


@pytest.fixture
def user_factory(stores: tuple[UserStore, TaskStore]):
    """Return a callable creating extra users in the test DB: user_factory(email, roles) -> Actor."""
    user_store, _ = stores

    def _make(email: str, roles: list[str], name: str | None = None) -> Actor:
        return make_user(user_store, email, roles, name)

    return _make
