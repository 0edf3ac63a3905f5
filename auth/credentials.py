"""
auth/credentials.py -- Password hashing, credential checks, and account creation.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). bcrypt's cost factor
       makes brute-force expensive and checkpw() compares in constant time.
       Plaintext passwords are never compared directly and never logged.

  Timing equalization: verify() always runs bcrypt, against a dummy hash when
       the email is unknown, so response time does not reveal whether an
       account exists. The route layer reports UnknownAccountError and
       PasswordMismatchError identically ("invalid credentials").

  Revocation: every password mutation goes through UserStore.set_password(),
       which stamps password_changed_at. That stamp is the only signal the
       session guard uses to reject tokens issued earlier.

  External sign-in: the identity provider's token is verified upstream. This
       module trusts the supplied email and links or creates the account.

Layer rule: no imports from api/ or library/.
"""

from __future__ import annotations

import logging

import bcrypt
from sqlalchemy.exc import IntegrityError

from auth.models import ROLE_USER, User
from auth.store import UserStore
from core.errors import EmailInUseError, MissingEmailError, PasswordMismatchError, UnknownAccountError

logger = logging.getLogger("readshelf.auth")

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes. The API layer caps password
    length well below that threshold.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------


class CredentialStore:
    """Password verification and account lifecycle on top of UserStore."""

    def __init__(self, user_store: UserStore, bcrypt_rounds: int = 12) -> None:
        self._users = user_store
        self._rounds = bcrypt_rounds
        # Computed once so the first unknown-email login is not measurably
        # slower than the rest.
        self._dummy_hash = hash_password("readshelf_timing_dummy", rounds=bcrypt_rounds)

    def hash(self, plain: str) -> str:
        return hash_password(plain, rounds=self._rounds)

    def verify(self, email: str, password: str) -> User:
        """Return the User whose email and password match.

        Raises UnknownAccountError when no account has that email and
        PasswordMismatchError when the password is wrong or the account has
        no local password. bcrypt runs in every branch.
        """
        user = self._users.get_by_email(email)
        if user is None or user.hashed_password is None:
            verify_password(password, self._dummy_hash)
            if user is None:
                raise UnknownAccountError()
            raise PasswordMismatchError()
        if not verify_password(password, user.hashed_password):
            raise PasswordMismatchError()
        return user

    def register(self, name: str, email: str, password: str) -> User:
        """Create a verified local account with the user role.

        Raises EmailInUseError if the email is taken, including when a
        concurrent registration wins the race to the UNIQUE constraint.
        """
        if self._users.get_by_email(email) is not None:
            raise EmailInUseError()
        user = User(
            name=name,
            email=email,
            hashed_password=self.hash(password),
            role=ROLE_USER,
            is_verified=True,
        )
        try:
            user_id = self._users.create_user(user)
        except IntegrityError as exc:
            raise EmailInUseError() from exc
        logger.info("Registered user %d", user_id)
        return self._users.get_by_id(user_id)

    def change_password(self, user_id: int, current_password: str, new_password: str) -> User:
        """Replace the password after re-checking the current one.

        Stamps password_changed_at, which revokes every previously issued token.
        """
        user = self._users.get_by_id(user_id)
        if user is None:
            raise UnknownAccountError()
        if user.hashed_password is None or not verify_password(current_password, user.hashed_password):
            raise PasswordMismatchError()
        self.set_password(user_id, new_password)
        return self._users.get_by_id(user_id)

    def set_password(self, user_id: int, new_password: str) -> str:
        """Hash and store a new password without checking the old one (operator use)."""
        changed_at = self._users.set_password(user_id, self.hash(new_password))
        logger.info("Password changed for user %d; earlier tokens revoked", user_id)
        return changed_at

    def external_sign_in(
        self,
        email: str | None,
        external_id: str | None,
        name: str | None = None,
        avatar: str | None = None,
    ) -> User:
        """Find or create the account for an already-verified external identity.

        Existing accounts get external_id linked if they have none yet. New
        accounts are verified, have no local password, and take their name
        from `name` or the local part of the email.
        """
        if not email:
            raise MissingEmailError()
        user = self._users.get_by_email(email)
        if user is not None:
            if not user.external_id and external_id:
                self._users.link_external(user.id, external_id)
                user = self._users.get_by_id(user.id)
            return user

        new_user = User(
            name=name or email.split("@")[0],
            email=email,
            role=ROLE_USER,
            is_verified=True,
            external_id=external_id,
            avatar=avatar or None,
        )
        try:
            user_id = self._users.create_user(new_user)
        except IntegrityError:
            # Lost a race with a concurrent sign-in for the same email.
            existing = self._users.get_by_email(email)
            if existing is None:
                raise
            return existing
        logger.info("Created user %d from external sign-in", user_id)
        return self._users.get_by_id(user_id)
