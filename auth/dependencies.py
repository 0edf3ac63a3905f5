"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_current_identity() hands the request's Authorization header and auth
cookie to the SessionGuard on app.state and returns the resolved Identity.
Route handlers receive the Identity as a parameter and pass it explicitly to
the services they call; nothing is stashed on the request object.

require_role(*roles) wraps get_current_identity() and applies the role check.

Layer rule: no imports from api/ or library/.
  auth/dependencies.py may import from fastapi (for Depends/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.models import Identity
from auth.permissions import authorize_role
from auth.session import SessionGuard


def get_current_identity(request: Request) -> Identity:
    """Require authentication. AuthenticationError becomes a 401 in api/main.py.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(identity: Identity = Depends(get_current_identity)): ...
    """
    guard: SessionGuard = request.app.state.session_guard
    cookie_name: str = request.app.state.settings.auth_cookie_name
    return guard.authenticate(
        request.headers.get("Authorization"),
        request.cookies.get(cookie_name),
    )


def require_role(*roles: str):
    """Build a dependency that requires one of the given roles (403 otherwise)."""

    def _guard(identity: Identity = Depends(get_current_identity)) -> Identity:
        authorize_role(identity, roles)
        return identity

    return _guard
