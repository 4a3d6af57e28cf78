"""
tests/conftest.py -- Shared test fixtures for the Results API tests.

This module provides:
  - engine: a private in-memory database for store and service unit tests
  - user_store / result_store / users_service / results_service on that engine
  - api_client: TestClient wired to an isolated shared-memory database, with an
    admin and a regular user already registered and a token issued for each

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API fixtures because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

Tokens are issued explicitly by the fixture for each user. Nothing is memoized
between tests; a test that needs another identity asks for a new token.

DEBUG must be set before any auth/core import so get_settings() can
auto-generate SECRET_KEY in dev mode instead of raising ValueError. The login
rate limit is raised so the login tests never trip it.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import NamedTuple

# CRITICAL: Set DEBUG before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app, init_state
from auth.models import ROLE_ADMIN, User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from core.database import create_db_engine
from results.store import ResultStore
from services.results import ResultsService
from services.users import UsersService

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"
USER_EMAIL = "player@example.com"
USER_PASSWORD = "playerpass123"


# ---------------------------------------------------------------------------
# Unit-test fixtures -- one private database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = create_db_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def result_store(engine: Engine) -> ResultStore:
    return ResultStore(engine)


@pytest.fixture
def users_service(user_store: UserStore) -> UsersService:
    return UsersService(user_store)


@pytest.fixture
def results_service(result_store: ResultStore, user_store: UserStore) -> ResultsService:
    return ResultsService(result_store, user_store)


@pytest.fixture
def credentials() -> dict[str, tuple[str, str]]:
    """Plaintext logins for the two users api_client registers."""
    return {"admin": (ADMIN_EMAIL, ADMIN_PASSWORD), "user": (USER_EMAIL, USER_PASSWORD)}


# ---------------------------------------------------------------------------
# API fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


class ApiContext(NamedTuple):
    client: TestClient
    admin_token: str
    admin_id: int
    user_token: str
    user_id: int

    def headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    @property
    def admin(self) -> dict[str, str]:
        return self.headers(self.admin_token)

    @property
    def user(self) -> dict[str, str]:
        return self.headers(self.user_token)


def _patch_lifespan(engine: Engine):
    """Return an async context manager that replaces the real lifespan.

    Wires the test engine into app.state through the same init_state() the
    production lifespan uses, so routes see the isolated test database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        init_state(app, engine)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers against an in-memory database private to the
    test module. An admin and a regular user exist before the first request.
    """
    name = request.module.__name__.replace(".", "_")
    engine = create_db_engine(f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")
    store = UserStore(engine)

    admin = User(email=ADMIN_EMAIL, password_hash=hash_password(ADMIN_PASSWORD), stored_roles=frozenset({ROLE_ADMIN}))
    admin_id = store.create_user(admin)
    player = User(email=USER_EMAIL, password_hash=hash_password(USER_PASSWORD))
    user_id = store.create_user(player)

    admin_token = create_access_token(store.get_by_id(admin_id))
    user_token = create_access_token(store.get_by_id(user_id))

    app.router.lifespan_context = _patch_lifespan(engine)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client, admin_token, admin_id, user_token, user_id)

    engine.dispose()
