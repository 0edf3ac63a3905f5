"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond trivial
conversions). Dataclasses own domain shape; stores and services do the work.

Layer rule: no imports from api/ or library/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


@dataclass
class User:
    """A registered account.

    hashed_password is None for accounts created through external sign-in
    only (they have no local password and can never pass a password login).
    It is never serialized outward: api/models.py exposes UserResponse, which
    has no password field.

    password_changed_at is the sole revocation signal for issued tokens. It is
    stamped on every password mutation; tokens issued at or before it are
    stale (see auth/session.py).
    """

    name: str
    email: str
    role: str = ROLE_USER
    id: int | None = None
    hashed_password: str | None = None
    is_verified: bool = False
    external_id: str | None = None
    avatar: str | None = None
    password_changed_at: str | None = None  # ISO 8601 UTC, None = never changed
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, resolved once per request by SessionGuard.

    Passed explicitly into downstream services (authorization, document
    lifecycle) instead of being stored on a mutable request object.
    """

    user_id: int
    role: str
    email: str
    name: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def from_user(cls, user: User) -> Identity:
        return cls(user_id=user.id, role=user.role, email=user.email, name=user.name)


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a bearer token."""

    user_id: int
    issued_at: float  # POSIX seconds, sub-second precision
