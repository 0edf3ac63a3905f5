"""
auth/tokens.py -- Signed bearer tokens and the auth cookie.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the user id ("sub") and two
       NumericDate claims: "iat" (issue time) and "exp" (fixed expiry, 30 days
       by default). Nothing else is embedded -- role and profile are always
       re-read from the store by the session guard.

  iat precision: iat is written with sub-second precision (RFC 7519 allows
       non-integer NumericDate values). The session guard compares it against
       password_changed_at, so a fresh login right after a password change is
       not mistaken for a stale token issued in the same second.

  Secret: injected at construction. TokenService never reads settings or the
       environment; api/main.py builds it once at startup. An empty secret is
       a ConfigurationError there, not a per-request failure.

  Failures: verify() raises InvalidTokenError for every failure mode
       (malformed, bad signature, expired, missing claims). The reason is kept
       on the exception for server-side logs only.

Layer rule: no imports from api/ or library/.
"""

from __future__ import annotations

import time

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import TokenClaims
from core.errors import ConfigurationError, InvalidTokenError

_ALGORITHM = "HS256"


class TokenService:
    """Issue and verify time-limited HS256 bearer tokens."""

    def __init__(self, secret_key: str, expire_seconds: int = 30 * 24 * 60 * 60) -> None:
        if not secret_key:
            raise ConfigurationError("A token signing secret must be configured.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, user_id: int) -> str:
        """Encode a signed token for user_id, issued now."""
        issued_at = time.time()
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": int(issued_at) + self.expire_seconds,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """Decode and verify a token. Raises InvalidTokenError on any failure."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise InvalidTokenError(detail="expired") from exc
        except JWTError as exc:
            raise InvalidTokenError(detail="malformed or bad signature") from exc

        try:
            return TokenClaims(user_id=int(payload["sub"]), issued_at=float(payload["iat"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTokenError(detail="missing or invalid claims") from exc


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, *, name: str, max_age: int, secure: bool) -> None:
    """Write the token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS in production.
    max_age: matches the token expiry so both expire together.
    """
    response.set_cookie(
        name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age,
    )


def clear_auth_cookie(response, *, name: str) -> None:
    response.delete_cookie(name, httponly=True, samesite="lax")
