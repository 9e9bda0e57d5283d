"""
api/routes/v1/auth.py -- Authentication lifecycle REST endpoints.

Routes:
  POST /api/v1/auth/register                 -- create account; returns user + token pair
  POST /api/v1/auth/login                    -- email/password login; returns user + token pair
  POST /api/v1/auth/logout                   -- consume a refresh token; 204
  POST /api/v1/auth/refresh-tokens           -- rotate a refresh token; returns new pair
  POST /api/v1/auth/forgot-password          -- email a reset-password token; 204
  POST /api/v1/auth/reset-password?token=    -- set a new password; 204
  POST /api/v1/auth/send-verification-email  -- email a verify-email token (requires auth); 204
  POST /api/v1/auth/verify-email?token=      -- mark email verified; 204
  GET  /api/v1/auth/me                       -- current user (requires auth)

Security:
  Login, register and forgot-password share the LOGIN_LIMIT rate limit.
  Responses that carry tokens set Cache-Control: no-store.
  Every failure is raised as a core.errors type and rendered by api/main.py.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response

from api.limiter import DEFAULT_LIMIT, LOGIN_LIMIT, limiter
from api.models import (
    AuthResponse,
    AuthTokensResponse,
    ForgotPasswordRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
)
from auth.dependencies import get_current_user
from auth.models import User
from auth.service import AuthService
from auth.users import UserService
from core.email import EmailService

# Auth policy:
# - register, login, logout, refresh-tokens, forgot-password, reset-password,
#   verify-email: public -- the token or credentials in the request are the proof
# - send-verification-email, me: require a valid access token (get_current_user)
router = APIRouter()


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


# ---------------------------------------------------------------------------
# Account creation and login
# ---------------------------------------------------------------------------


@limiter.limit(LOGIN_LIMIT)
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, response: Response, body: RegisterRequest) -> AuthResponse:
    """Create a "user" role account and log it in."""
    users: UserService = request.app.state.users
    auth: AuthService = request.app.state.auth
    user = users.create_user(
        email=body.email,
        password=body.password,
        name=body.name,
        last_name=body.last_name,
    )
    tokens = auth.issue_auth_tokens(user)
    _no_store(response)
    return AuthResponse(user=UserResponse.from_user(user), tokens=AuthTokensResponse.from_tokens(tokens))


@limiter.limit(LOGIN_LIMIT)
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with email and password.

    Unknown email and wrong password produce the same 401 so the endpoint
    cannot be used to discover registered addresses.
    """
    auth: AuthService = request.app.state.auth
    user = auth.login_with_email_and_password(body.email, body.password)
    tokens = auth.issue_auth_tokens(user)
    # Re-read so last_login reflects this login.
    user = request.app.state.users.get_user_by_id(user.id) or user
    _no_store(response)
    return AuthResponse(user=UserResponse.from_user(user), tokens=AuthTokensResponse.from_tokens(tokens))


@limiter.limit(DEFAULT_LIMIT)
@router.post("/auth/logout", status_code=204)
def logout(request: Request, body: RefreshTokenRequest) -> Response:
    """Consume the refresh token. 404 if it was never issued or is already gone."""
    auth: AuthService = request.app.state.auth
    auth.logout(body.refresh_token)
    return Response(status_code=204)


@limiter.limit(DEFAULT_LIMIT)
@router.post("/auth/refresh-tokens", response_model=AuthTokensResponse)
def refresh_tokens(request: Request, response: Response, body: RefreshTokenRequest) -> AuthTokensResponse:
    """Exchange a refresh token for a new pair. The old refresh token stops working."""
    auth: AuthService = request.app.state.auth
    tokens = auth.refresh_auth(body.refresh_token)
    _no_store(response)
    return AuthTokensResponse.from_tokens(tokens)


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


@limiter.limit(LOGIN_LIMIT)
@router.post("/auth/forgot-password", status_code=204)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> Response:
    auth: AuthService = request.app.state.auth
    email: EmailService = request.app.state.email
    token = auth.generate_reset_password_token(body.email)
    email.send_reset_password_email(body.email, token)
    return Response(status_code=204)


@limiter.limit(DEFAULT_LIMIT)
@router.post("/auth/reset-password", status_code=204)
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    token: Annotated[str, Query(min_length=1)],
) -> Response:
    auth: AuthService = request.app.state.auth
    auth.reset_password(token, body.password)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------


@limiter.limit(DEFAULT_LIMIT)
@router.post("/auth/send-verification-email", status_code=204)
def send_verification_email(request: Request, current_user: User = Depends(get_current_user)) -> Response:
    auth: AuthService = request.app.state.auth
    email: EmailService = request.app.state.email
    token = auth.generate_verify_email_token(current_user)
    email.send_verification_email(current_user.email, token)
    return Response(status_code=204)


@limiter.limit(DEFAULT_LIMIT)
@router.post("/auth/verify-email", status_code=204)
def verify_email(request: Request, token: Annotated[str, Query(min_length=1)]) -> Response:
    auth: AuthService = request.app.state.auth
    auth.verify_email(token)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the currently authenticated user."""
    return UserResponse.from_user(current_user)
