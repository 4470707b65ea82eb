"""
tests/conftest.py -- Shared test fixtures for Roster unit and integration tests.

This module provides:
  - hasher / authority / clock / store / accounts: unit-level components wired
    to an in-memory SQLite store and a controllable clock
  - _make_test_store(): isolated named shared-memory DB for the API client
  - _patch_lifespan(): wires the test store into app.state, bypassing real startup
  - api_client: TestClient plus an admin identity and its bearer token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

SECRET_KEY and DATABASE_URL must be set before any app import so
get_settings() can build a complete Settings object. BCRYPT_ROUNDS=4 keeps
the suite fast; the cost is still embedded in every hash.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set required config before any api/core import.
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-roster-0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app, build_components
from auth.accounts import AccountService
from auth.models import Role
from auth.passwords import PasswordHasher
from auth.policy import AccessPolicy
from auth.store import UserStore
from auth.tokens import TokenAuthority
from core.config import get_settings

TEST_SECRET = "unit-test-secret-0123456789abcdef0123456789"


class FrozenClock:
    """Callable clock for TokenAuthority; advance() moves it forward."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def authority(clock: FrozenClock) -> TokenAuthority:
    return TokenAuthority(TEST_SECRET, ttl=timedelta(hours=2), clock=clock)


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def accounts(store: UserStore, hasher: PasswordHasher, authority: TokenAuthority) -> AccountService:
    return AccountService(store, hasher, authority, AccessPolicy())


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    return UserStore(db_url=f"sqlite:///file:test_roster_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    Uses the same build_components() as production so the test app has the
    real gateway, policy and account service -- only the store differs.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        build_components(app, get_settings(), user_store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    One TestClient per test module. The admin is created through the real
    AccountService (registration can only create role "user").
    """
    user_store = _make_test_store(request.module.__name__.replace(".", "_"))
    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        accounts: AccountService = app.state.accounts
        admin = accounts.create_identity("testadmin", "testpass123", Role.ADMIN)
        token = accounts.tokens.issue(admin.id, admin.username, admin.role)
        yield client, token, admin.id

    user_store.close()
