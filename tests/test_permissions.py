"""Unit tests for auth/permissions.py role and ownership checks."""

from __future__ import annotations

import uuid
from types import SimpleNamespace

import pytest
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from auth.dependencies import require_role
from auth.models import ROLE_ADMIN, ROLE_USER, Identity, User
from auth.permissions import authorize_ownership, authorize_role, is_owner_or_admin
from auth.session import SessionGuard
from auth.store import UserStore
from core.errors import AuthorizationError, ReadShelfError

USER = Identity(user_id=1, role=ROLE_USER, email="u@example.com", name="U")
OTHER = Identity(user_id=2, role=ROLE_USER, email="o@example.com", name="O")
ADMIN = Identity(user_id=3, role=ROLE_ADMIN, email="a@example.com", name="A")


class TestAuthorizeRole:
    def test_allowed(self):
        authorize_role(ADMIN, [ROLE_ADMIN])

    def test_denied(self):
        with pytest.raises(AuthorizationError) as excinfo:
            authorize_role(USER, [ROLE_ADMIN])
        assert excinfo.value.status_code == 403

    def test_any_of_several(self):
        authorize_role(USER, (ROLE_USER, ROLE_ADMIN))


class TestOwnership:
    def test_owner(self):
        assert is_owner_or_admin(USER, 1)
        authorize_ownership(USER, 1)

    def test_admin_passes_for_any_owner(self):
        assert is_owner_or_admin(ADMIN, 1)
        authorize_ownership(ADMIN, 1)

    def test_other_user_denied(self):
        assert not is_owner_or_admin(OTHER, 1)
        with pytest.raises(AuthorizationError):
            authorize_ownership(OTHER, 1)


class TestRequireRoleDependency:
    """require_role() authenticates first, then applies the role check."""

    @pytest.fixture
    def user_store(self):
        # Route handlers run in a worker thread, so the DB must be shared.
        store = UserStore(f"sqlite:///file:test_roles_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
        yield store
        store.close()

    @pytest.fixture
    def client(self, token_service, user_store):
        app = FastAPI()
        app.state.session_guard = SessionGuard(token_service, user_store)
        app.state.settings = SimpleNamespace(auth_cookie_name="token")

        @app.exception_handler(ReadShelfError)
        async def _handler(request, exc: ReadShelfError):
            return JSONResponse(status_code=exc.status_code, content={"code": exc.code})

        @app.get("/admin-only")
        def admin_only(identity: Identity = Depends(require_role(ROLE_ADMIN))):
            return {"user_id": identity.user_id}

        return TestClient(app)

    def _token_for(self, token_service, user_store, role: str) -> dict[str, str]:
        user_id = user_store.create_user(User(name=role, email=f"{role}@example.com", role=role))
        return {"Authorization": f"Bearer {token_service.issue(user_id)}"}

    def test_admin_allowed(self, client, token_service, user_store):
        resp = client.get("/admin-only", headers=self._token_for(token_service, user_store, ROLE_ADMIN))
        assert resp.status_code == 200

    def test_user_forbidden(self, client, token_service, user_store):
        resp = client.get("/admin-only", headers=self._token_for(token_service, user_store, ROLE_USER))
        assert resp.status_code == 403
        assert resp.json()["code"] == "forbidden"

    def test_anonymous_unauthorized(self, client):
        assert client.get("/admin-only").status_code == 401
