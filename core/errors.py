"""
core/errors.py -- Domain exception taxonomy for ReadShelf.

Services raise these; they never build HTTP responses themselves. api/main.py
registers one exception handler for ReadShelfError that maps status_code and
code onto the shared ErrorResponse envelope, so the mapping lives in exactly
one place.

Messages on authentication errors are deliberately generic. The specific
reason (expired, bad signature, stale after password change, ...) is logged
server-side only.

Layer rule: core/ is the kernel. No imports from api/, auth/, or library/.
"""

from __future__ import annotations


class ReadShelfError(Exception):
    """Base class for every error that maps to a client-facing status code."""

    status_code: int = 500
    code: str = "internal_error"
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, detail: str | None = None) -> None:
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# 400 -- request problems
# ---------------------------------------------------------------------------


class ValidationError(ReadShelfError):
    status_code = 400
    code = "validation_error"
    message = "Request validation failed."


class MissingFieldsError(ValidationError):
    code = "missing_fields"
    message = "Please provide an email and password."


class MissingEmailError(ValidationError):
    code = "missing_email"
    message = "Email is required for external authentication."


class NoFileError(ValidationError):
    code = "no_file"
    message = "Please upload a file."


class UnsupportedFormatError(ValidationError):
    code = "unsupported_format"
    message = "Unsupported file type."


class FileTooLargeError(ValidationError):
    status_code = 413
    code = "file_too_large"
    message = "Upload exceeds the maximum allowed size."


class ConflictError(ReadShelfError):
    status_code = 400
    code = "conflict"
    message = "Resource already exists."


class EmailInUseError(ConflictError):
    code = "email_in_use"
    message = "User already exists."


# ---------------------------------------------------------------------------
# 401 / 403 -- identity and privilege
# ---------------------------------------------------------------------------


class AuthenticationError(ReadShelfError):
    status_code = 401
    code = "unauthorized"
    message = "Not authorized to access this route."


class InvalidTokenError(AuthenticationError):
    """Malformed, badly signed, expired, or incomplete bearer token."""


class InvalidCredentialsError(AuthenticationError):
    code = "invalid_credentials"
    message = "Invalid credentials."


class UnknownAccountError(InvalidCredentialsError):
    """No account with that email. Reported to clients as InvalidCredentialsError."""


class PasswordMismatchError(InvalidCredentialsError):
    """Account exists but the password does not match (or it has none)."""


class AuthorizationError(ReadShelfError):
    status_code = 403
    code = "forbidden"
    message = "Not authorized to access this resource."


# ---------------------------------------------------------------------------
# 404
# ---------------------------------------------------------------------------


class NotFoundError(ReadShelfError):
    status_code = 404
    code = "not_found"
    message = "Not found."


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


class ConfigurationError(RuntimeError):
    """Fatal misconfiguration detected while building services at startup.

    Not a ReadShelfError: it never maps to a per-request response.
    """
