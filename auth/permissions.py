"""
auth/permissions.py -- Role and ownership checks.

Both checks take an already-authenticated Identity; authentication always
happens first (SessionGuard), so these never see an anonymous caller.
Admins pass every ownership check.
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.models import Identity
from core.errors import AuthorizationError


def authorize_role(identity: Identity, allowed_roles: Iterable[str]) -> None:
    """Raise AuthorizationError unless identity.role is one of allowed_roles."""
    if identity.role not in set(allowed_roles):
        raise AuthorizationError(f"User role '{identity.role}' is not authorized to access this route.")


def is_owner_or_admin(identity: Identity, owner_id: int) -> bool:
    return identity.is_admin or identity.user_id == owner_id


def authorize_ownership(identity: Identity, owner_id: int) -> None:
    """Raise AuthorizationError unless identity owns the resource or is an admin."""
    if not is_owner_or_admin(identity, owner_id):
        raise AuthorizationError()
