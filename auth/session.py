"""
auth/session.py -- Resolve an incoming bearer token to an Identity.

Token sources, in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. The auth cookie (name from Settings.auth_cookie_name) -- browser clients.

Every failure (no token, bad token, unknown user, stale token) raises the same
AuthenticationError. The specific reason goes to the log at INFO, never to the
caller, so a client cannot learn which accounts exist or which tokens were
revoked.

Implicit revocation: a token is stale when the account's password_changed_at
is at or after the token's iat. Equal timestamps count as stale so a token
minted in the same instant as a password change is rejected. There is no
stored revocation list.

Layer rule: no imports from api/ or library/. Framework-agnostic on purpose:
auth/dependencies.py adapts it to FastAPI.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from auth.models import Identity, TokenClaims, User
from auth.store import UserStore
from auth.tokens import TokenService
from core.errors import AuthenticationError, InvalidTokenError

logger = logging.getLogger("readshelf.auth.session")

_BEARER_PREFIX = "Bearer "


def extract_token(authorization: str | None, cookie_token: str | None) -> str | None:
    """Pick the token from the Authorization header, falling back to the cookie."""
    if authorization and authorization.startswith(_BEARER_PREFIX):
        token = authorization[len(_BEARER_PREFIX) :].strip()
        if token:
            return token
    if cookie_token:
        return cookie_token
    return None


def issued_before_password_change(user: User, claims: TokenClaims) -> bool:
    if not user.password_changed_at:
        return False
    changed_at = datetime.fromisoformat(user.password_changed_at)
    if changed_at.tzinfo is None:
        changed_at = changed_at.replace(tzinfo=timezone.utc)
    return changed_at.timestamp() >= claims.issued_at


class SessionGuard:
    """Authenticate requests against TokenService and UserStore."""

    def __init__(self, token_service: TokenService, user_store: UserStore) -> None:
        self._tokens = token_service
        self._users = user_store

    def authenticate(self, authorization: str | None, cookie_token: str | None) -> Identity:
        """Return the caller's Identity or raise AuthenticationError."""
        token = extract_token(authorization, cookie_token)
        if token is None:
            raise AuthenticationError()

        try:
            claims = self._tokens.verify(token)
        except InvalidTokenError as exc:
            logger.info("Rejected token: %s", exc.detail)
            raise AuthenticationError() from None

        user = self._users.get_by_id(claims.user_id)
        if user is None:
            logger.info("Rejected token: user %d no longer exists", claims.user_id)
            raise AuthenticationError()

        if issued_before_password_change(user, claims):
            logger.info("Rejected token: issued before password change for user %d", user.id)
            raise AuthenticationError()

        return Identity.from_user(user)
