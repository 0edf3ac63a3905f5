"""
tests/test_tokens.py -- Unit tests for auth/tokens.py.

Covers:
  - issue() -> verify() returns the user id and a sub-second issued_at
  - Expired, tampered, foreign-secret and malformed tokens raise InvalidTokenError
  - Tokens with missing or non-numeric subject are rejected
  - An empty signing secret is a ConfigurationError at construction
"""

from __future__ import annotations

import time

import pytest
from jose import jwt

from auth.tokens import TokenService
from core.errors import ConfigurationError, InvalidTokenError

SECRET = "s" * 40


class TestIssueAndVerify:
    def test_round_trip_returns_user_id(self, token_service):
        token = token_service.issue(42)
        claims = token_service.verify(token)
        assert claims.user_id == 42

    def test_issued_at_is_now(self, token_service):
        before = time.time()
        claims = token_service.verify(token_service.issue(7))
        after = time.time()
        assert before <= claims.issued_at <= after

    def test_payload_shape(self):
        service = TokenService(SECRET, expire_seconds=120)
        payload = jwt.decode(service.issue(5), SECRET, algorithms=["HS256"])
        assert payload["sub"] == "5"
        assert isinstance(payload["exp"], int)
        assert payload["exp"] - int(payload["iat"]) == 120


class TestRejection:
    def test_expired_token(self):
        service = TokenService(SECRET, expire_seconds=-60)
        with pytest.raises(InvalidTokenError) as excinfo:
            service.verify(service.issue(1))
        assert excinfo.value.detail == "expired"

    def test_token_signed_with_other_secret(self):
        other = TokenService("o" * 40)
        with pytest.raises(InvalidTokenError):
            TokenService(SECRET).verify(other.issue(1))

    def test_tampered_signature(self, token_service):
        token = token_service.issue(1)
        head, body, sig = token.split(".")
        tampered = ".".join([head, body, sig[:-2] + ("AA" if not sig.endswith("AA") else "BB")])
        with pytest.raises(InvalidTokenError):
            token_service.verify(tampered)

    @pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
    def test_malformed_token(self, token_service, token):
        with pytest.raises(InvalidTokenError):
            token_service.verify(token)

    def test_missing_subject(self):
        token = jwt.encode({"iat": time.time(), "exp": int(time.time()) + 60}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidTokenError) as excinfo:
            TokenService(SECRET).verify(token)
        assert excinfo.value.detail == "missing or invalid claims"

    def test_non_numeric_subject(self):
        token = jwt.encode(
            {"sub": "alice", "iat": time.time(), "exp": int(time.time()) + 60},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            TokenService(SECRET).verify(token)


class TestConfiguration:
    def test_empty_secret_refused(self):
        with pytest.raises(ConfigurationError):
            TokenService("")
