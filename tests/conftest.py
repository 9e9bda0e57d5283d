"""
tests/conftest.py -- Shared test fixtures for Warden unit and integration tests.

This module provides:
  - _make_engine(): an isolated named shared-memory SQLite engine
  - user_store / token_store / user_service / auth_service: function-scoped
    fixtures over a fresh engine, for unit tests of auth/
  - RecordingEmailService: keeps sent messages in memory so tests can read
    the reset / verification token out of the link
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api: module-scoped ApiHarness (TestClient + admin + regular user + tokens)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

DEBUG, RATE_LIMIT_ENABLED and BCRYPT_ROUNDS must be set before any core/,
auth/ or api/ import: get_settings() is cached on first use and several
modules read it at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import NamedTuple
from urllib.parse import parse_qs, urlparse

# CRITICAL: Set these before any project import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app
from auth.models import Role, User
from auth.service import AuthService
from auth.store import TokenStore, UserStore, create_db_engine
from auth.users import UserService
from core.email import EmailService

# Shared password for fixture accounts; satisfies the letter+digit rule.
PASSWORD = "password1"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_engine(db_suffix: str) -> Engine:
    """Create an isolated named shared-memory SQLite engine.

    A uuid is appended so repeated fixtures never share a database.
    """
    name = f"test_warden_{db_suffix}_{uuid.uuid4().hex}"
    return create_db_engine(f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")


class RecordingEmailService(EmailService):
    """EmailService that keeps every message instead of logging it."""

    def __init__(self) -> None:
        super().__init__()
        self.outbox: list[tuple[str, str, str]] = []

    def deliver(self, to: str, subject: str, text: str) -> None:
        self.outbox.append((to, subject, text))

    def last_token(self) -> str:
        """Return the token query parameter from the most recent message's link."""
        _, _, text = self.outbox[-1]
        link = next(line for line in text.splitlines() if "token=" in line)
        return parse_qs(urlparse(link.strip()).query)["token"][0]


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = _make_engine("unit")
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def token_store(engine: Engine) -> TokenStore:
    return TokenStore(engine)


@pytest.fixture
def user_service(user_store: UserStore) -> UserService:
    return UserService(user_store)


@pytest.fixture
def auth_service(user_service: UserService, token_store: TokenStore) -> AuthService:
    return AuthService(user_service, token_store)


@pytest.fixture
def alice(user_service: UserService) -> User:
    """A regular active user with PASSWORD as password."""
    return user_service.create_user(
        email="alice@example.com",
        password=PASSWORD,
        name="Alice",
        last_name="Liddell",
    )


# ---------------------------------------------------------------------------
# App harness
# ---------------------------------------------------------------------------


def _patch_lifespan(engine: Engine, users: UserService, auth: AuthService, email: EmailService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.user_store = users.store
        app.state.token_store = auth.tokens
        app.state.users = users
        app.state.auth = auth
        app.state.email = email
        yield

    return test_lifespan


class ApiHarness(NamedTuple):
    client: TestClient
    auth: AuthService
    email: RecordingEmailService
    admin: User
    admin_token: str
    user: User
    user_token: str

    def headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="module")
def api() -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers but use an isolated in-memory store. One admin and
    one regular user exist before the client starts, each with a valid access
    token for use in Authorization headers.
    """
    engine = _make_engine("api")
    users = UserService(UserStore(engine))
    auth = AuthService(users, TokenStore(engine))
    email = RecordingEmailService()

    admin = users.create_user(
        email="admin@example.com",
        password=PASSWORD,
        name="Ada",
        last_name="Admin",
        role=Role.ADMIN.value,
    )
    user = users.create_user(
        email="bob@example.com",
        password=PASSWORD,
        name="Bob",
        last_name="Builder",
    )
    admin_token = auth.issue_auth_tokens(admin).access.token
    user_token = auth.issue_auth_tokens(user).access.token

    app.router.lifespan_context = _patch_lifespan(engine, users, auth, email)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiHarness(client, auth, email, admin, admin_token, user, user_token)

    engine.dispose()
