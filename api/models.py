"""
API request and response models for ReadShelf REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
library/models.py, which own the internal domain representation. Route
handlers map between the two.

Separation of concerns: domain dataclasses = domain truth; api/ models = API
contract. In particular UserResponse has no password field, so a hash can
never be serialized by accident.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import User
from library.models import Document

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
SORT_PATTERN = r"^-?(created_at|updated_at|title|author|size)$"

_DIGIT = re.compile(r"\d")
_UPPER = re.compile(r"[A-Z]")


def _check_password_strength(value: str) -> str:
    if not _DIGIT.search(value):
        raise ValueError("Password must contain a number")
    if not _UPPER.search(value):
        raise ValueError("Password must contain at least one uppercase letter")
    return value


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class VisibilityEnum(str, Enum):
    public = "public"
    private = "private"


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=100)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=72)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Both fields default to empty so a missing field reaches the route and is
    reported as missing_fields rather than a generic validation error.
    """

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=72)


class ExternalAuthRequest(BaseModel):
    """Request body for POST /api/v1/auth/external.

    The identity provider's token has already been verified upstream; email
    is trusted as-is. email is optional here so its absence maps to
    missing_email.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[str] = Field(default=None, max_length=255)
    external_id: str = Field(min_length=1, max_length=255)
    name: Optional[str] = Field(default=None, max_length=100)
    avatar: Optional[str] = Field(default=None, max_length=1024)

    @field_validator("email")
    @classmethod
    def email_format(cls, value: Optional[str]) -> Optional[str]:
        if value and not re.match(EMAIL_PATTERN, value):
            raise ValueError("Valid email is required")
        return value


class PasswordChangeRequest(BaseModel):
    """Request body for PATCH /api/v1/auth/password."""

    current_password: str = Field(min_length=1, max_length=72)
    new_password: str = Field(min_length=6, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of an account. Never includes credentials."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    is_verified: bool
    avatar: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            is_verified=user.is_verified,
            avatar=user.avatar,
        )


class AuthResponse(BaseModel):
    """Returned by register, login, external sign-in and password change."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    token: str
    user: UserResponse


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentUpdate(BaseModel):
    """Request body for PATCH /api/v1/documents/{id}.

    extra="forbid": storage location, format and size cannot be changed, and
    trying to is a validation error rather than a silent no-op.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    author: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    visibility: Optional[VisibilityEnum] = None
    is_public: Optional[bool] = None

    def changes(self) -> dict:
        """Return the domain field changes, folding is_public into visibility."""
        visibility = self.visibility.value if self.visibility else None
        if visibility is None and self.is_public is not None:
            visibility = VisibilityEnum.public.value if self.is_public else VisibilityEnum.private.value
        return {
            "title": self.title,
            "author": self.author,
            "description": self.description,
            "visibility": visibility,
        }


class DocumentResponse(BaseModel):
    """Full metadata for one document. The storage location is internal and not exposed."""

    model_config = ConfigDict(frozen=True)

    id: int
    owner_id: int
    title: str
    author: Optional[str]
    description: Optional[str]
    format: str
    size: int
    visibility: str
    is_public: bool
    created_at: str
    updated_at: str

    @classmethod
    def from_document(cls, doc: Document) -> "DocumentResponse":
        return cls(
            id=doc.id,
            owner_id=doc.owner_id,
            title=doc.title,
            author=doc.author,
            description=doc.description,
            format=doc.format,
            size=doc.size,
            visibility=doc.visibility,
            is_public=doc.is_public,
            created_at=doc.created_at,
            updated_at=doc.updated_at,
        )


class DocumentEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    document: DocumentResponse


class DocumentSummaryRow(BaseModel):
    """One row in the GET /documents list."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    author: Optional[str]
    format: str
    visibility: str

    @classmethod
    def from_document(cls, doc: Document) -> "DocumentSummaryRow":
        return cls(id=doc.id, title=doc.title, author=doc.author, format=doc.format, visibility=doc.visibility)


class DocumentListResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    items: list[DocumentSummaryRow]
    count: int
    total: int
    page: int
    total_pages: int


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
