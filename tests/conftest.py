"""
tests/conftest.py -- Shared test fixtures for ReadShelf unit and integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + documents
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient over the real app with a throwaway upload directory
  - register / make_admin: helpers that create accounts and return auth headers
  - user_store / document_store / artifacts: per-test stores for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
Unit tests run on one thread, so plain :memory: is fine there.

DEBUG, BCRYPT_ROUNDS and ALLOWED_HOSTS must be set before api.main is
imported: get_settings() is cached and the middleware stack reads it at
import time. TestClient sends Host: testserver.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# Set before any auth/core import so get_settings() auto-generates SECRET_KEY
# and TrustedHostMiddleware accepts the TestClient host.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost", "127.0.0.1"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, build_services
from auth.credentials import CredentialStore
from auth.models import ROLE_ADMIN
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings
from library.storage import ArtifactStore
from library.store import DocumentStore

TEST_PASSWORD = "Passw0rdX"

# Rate limits are exercised by slowapi itself; here they would only make
# fixture-heavy modules flaky.
limiter.enabled = False


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, DocumentStore]:
    """Create isolated named shared-memory SQLite stores for one test module.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. the module name).
    """
    db_url = f"sqlite:///file:test_readshelf_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=db_url), DocumentStore(db_url=db_url)


def _patch_lifespan(settings: Settings, user_store: UserStore, document_store: DocumentStore):
    """Return an async context manager that replaces the real lifespan.

    Uses the same build_services() as production so routes see the real
    service graph, just over test stores and a temporary upload root.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        build_services(app, settings, user_store, document_store)
        yield

    return test_lifespan


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request, tmp_path_factory) -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app with isolated stores.

    Each test module gets its own database and upload directory. Tests that
    need to inspect server-side state use client.app.state.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, document_store = _make_test_stores(suffix)
    upload_dir = tmp_path_factory.mktemp(f"uploads_{suffix}")
    settings = get_settings().model_copy(update={"upload_dir": str(upload_dir)})

    app.router.lifespan_context = _patch_lifespan(settings, user_store, document_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    user_store.close()
    document_store.close()


@pytest.fixture(scope="module")
def register(api_client) -> Callable[..., tuple[dict[str, str], dict]]:
    """Return a helper that registers a fresh account over HTTP.

    The helper returns (auth_headers, user_json). The cookie set by the
    response is dropped so later requests authenticate only through the
    headers they pass explicitly.
    """

    def _register(name: str = "Reader", email: str | None = None, password: str = TEST_PASSWORD):
        resp = api_client.post(
            "/api/v1/auth/register",
            json={"name": name, "email": email or unique_email(), "password": password},
        )
        assert resp.status_code == 201, resp.text
        api_client.cookies.clear()
        data = resp.json()
        return bearer(data["token"]), data["user"]

    return _register


@pytest.fixture(scope="module")
def make_admin(api_client) -> Callable[[], tuple[dict[str, str], int]]:
    """Return a helper that creates an admin directly in the store.

    Admins cannot self-register, so this mirrors the create-admin command.
    Returns (auth_headers, user_id).
    """

    def _make_admin():
        state = api_client.app.state
        user = state.credentials.register("Admin", unique_email("admin"), TEST_PASSWORD)
        state.user_store.update_user(user.id, role=ROLE_ADMIN)
        return bearer(state.token_service.issue(user.id)), user.id

    return _make_admin


# ---------------------------------------------------------------------------
# Function-scoped fixtures for unit tests
# ---------------------------------------------------------------------------


@pytest.fixture
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def document_store() -> Generator[DocumentStore, None, None]:
    store = DocumentStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture
def artifacts(tmp_path) -> ArtifactStore:
    return ArtifactStore(tmp_path / "uploads")


@pytest.fixture
def credentials(user_store) -> CredentialStore:
    return CredentialStore(user_store, bcrypt_rounds=4)


@pytest.fixture
def token_service() -> TokenService:
    return TokenService("x" * 40, expire_seconds=3600)
