"""
api/routes/v1/auth.py -- Account and session endpoints.

Routes:
  POST  /api/v1/auth/register    -- create account; 201 {token, user} + cookie
  POST  /api/v1/auth/login       -- password login; 200 {token, user} + cookie
  POST  /api/v1/auth/external    -- sign in with an already-verified external identity
  GET   /api/v1/auth/me          -- current user (requires auth)
  PATCH /api/v1/auth/password    -- change password; revokes older tokens (requires auth)
  GET|POST /api/v1/auth/logout   -- clear the auth cookie; 200

Security:
  POST /login and POST /register are rate-limited per IP.
  CredentialStore.verify() provides timing equalization -- use it, never inline
  get_by_email() + verify_password().
  Unknown email and wrong password both answer 401 invalid_credentials.
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    AuthResponse,
    ExternalAuthRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    PasswordChangeRequest,
    RegisterRequest,
    UserResponse,
)
from auth.credentials import CredentialStore
from auth.dependencies import get_current_identity
from auth.models import Identity, User
from auth.store import UserStore
from auth.tokens import TokenService, clear_auth_cookie, set_auth_cookie
from core.config import get_settings
from core.errors import (
    AuthenticationError,
    AuthorizationError,
    InvalidCredentialsError,
    MissingFieldsError,
    ValidationError,
)

logger = logging.getLogger("readshelf.auth")

_settings = get_settings()

# Auth policy:
# - POST     /auth/register:  public (unless self-registration is disabled)
# - POST     /auth/login:     public
# - POST     /auth/external:  public -- provider token verified upstream
# - GET|POST /auth/logout:    public -- clearing a cookie needs no prior auth
# - GET      /auth/me:        requires auth (get_current_identity)
# - PATCH    /auth/password:  requires auth (get_current_identity)
router = APIRouter()


def _token_response(request: Request, user: User, status_code: int) -> JSONResponse:
    """Issue a token for user and return it in the body and the auth cookie."""
    settings = request.app.state.settings
    token_service: TokenService = request.app.state.token_service
    token = token_service.issue(user.id)
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(token=token, user=UserResponse.from_user(user)).model_dump(),
    )
    set_auth_cookie(
        resp,
        token,
        name=settings.auth_cookie_name,
        max_age=token_service.expire_seconds,
        secure=settings.cookie_secure,
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.register_rate_limit)
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a local account with the user role and sign it in."""
    if not request.app.state.settings.self_registration_enabled:
        raise AuthorizationError("Self-registration is disabled.")
    credentials: CredentialStore = request.app.state.credentials
    user = credentials.register(body.name, body.email, body.password)
    return _token_response(request, user, 201)


@limiter.limit(_settings.login_rate_limit)
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Returns the same generic error for unknown email and wrong password to
    avoid leaking account existence.
    """
    if not body.email.strip() or not body.password:
        raise MissingFieldsError()
    credentials: CredentialStore = request.app.state.credentials
    try:
        user = credentials.verify(body.email, body.password)
    except InvalidCredentialsError:
        logger.info("Failed login attempt from %s", request.client.host if request.client else "unknown")
        raise InvalidCredentialsError() from None
    return _token_response(request, user, 200)


@router.post("/auth/external", response_model=AuthResponse)
def external_auth(request: Request, body: ExternalAuthRequest) -> JSONResponse:
    """Sign in (creating the account on first use) with a provider-verified email."""
    credentials: CredentialStore = request.app.state.credentials
    user = credentials.external_sign_in(
        email=body.email,
        external_id=body.external_id,
        name=body.name,
        avatar=body.avatar,
    )
    return _token_response(request, user, 200)


@router.api_route("/auth/logout", methods=["GET", "POST"], response_model=MessageResponse)
async def logout(request: Request) -> JSONResponse:
    """Clear the auth cookie. Tokens already handed out stay valid until expiry."""
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_auth_cookie(resp, name=request.app.state.settings.auth_cookie_name)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, identity: Identity = Depends(get_current_identity)) -> MeResponse:
    """Return the profile of the currently authenticated user."""
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(identity.user_id)
    if user is None:
        raise AuthenticationError()
    return MeResponse(user=UserResponse.from_user(user))


@router.patch("/auth/password", response_model=AuthResponse)
def change_password(
    request: Request,
    body: PasswordChangeRequest,
    identity: Identity = Depends(get_current_identity),
) -> JSONResponse:
    """Replace the caller's password and return a fresh token.

    Every token issued before this call, including the one used to make it,
    is rejected from now on.
    """
    credentials: CredentialStore = request.app.state.credentials
    try:
        user = credentials.change_password(identity.user_id, body.current_password, body.new_password)
    except InvalidCredentialsError:
        # 400, not 401: the session itself is still valid.
        raise ValidationError("Current password is incorrect.") from None
    return _token_response(request, user, 200)
