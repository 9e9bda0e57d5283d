"""
API request and response models for Warden REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two,
and serialization of a User always goes through UserResponse.from_user() so
the password hash can never leak into a response.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, model_validator

from auth.models import AuthTokens, Role, TokenGrant, User
from core.query import Page

# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------


def _check_password(value: str) -> str:
    if not any(c.isdigit() for c in value) or not any(c.isalpha() for c in value):
        raise ValueError("password must contain at least 1 letter and 1 number")
    return value


# Letter+digit rule on top of the length bounds. Length is not limited by
# bcrypt: auth/credentials.py pre-hashes to a fixed size.
Password = Annotated[str, Field(min_length=8, max_length=128), AfterValidator(_check_password)]

# Ids are uuid4 hex strings; anything else is rejected before it reaches a store.
USER_ID_PATTERN = r"^[0-9a-f]{32}$"

_Name = Annotated[str, Field(min_length=1, max_length=50)]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    admin = Role.ADMIN.value
    moderator = Role.MODERATOR.value
    editor = Role.EDITOR.value
    user = Role.USER.value


# ---------------------------------------------------------------------------
# Auth request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: _Name
    last_name: _Name
    email: EmailStr
    password: Password
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("confirm_password must match password")
        return self


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    No format rules beyond presence: a malformed email simply fails to log in
    with the same 401 as a wrong password.
    """

    email: str = Field(min_length=1, max_length=254)
    password: str = Field(min_length=1, max_length=128)


class RefreshTokenRequest(BaseModel):
    """Request body for POST /auth/logout and POST /auth/refresh-tokens."""

    refresh_token: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: Password


# ---------------------------------------------------------------------------
# User management request models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users (requires manage_users)."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: _Name
    last_name: _Name
    email: EmailStr
    password: Password
    role: RoleEnum = RoleEnum.user


class UserPatch(BaseModel):
    """Request body for PATCH /api/v1/users/{user_id}.

    role is not patchable here: owners may patch their own record, and a
    self-service role change would bypass the permission model.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[_Name] = None
    last_name: Optional[_Name] = None
    email: Optional[EmailStr] = None
    password: Optional[Password] = None

    @model_validator(mode="after")
    def at_least_one_field(self) -> "UserPatch":
        if not self.model_dump(exclude_none=True):
            raise ValueError("at least one field must be provided")
        return self


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. hashed_password is never part of it."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    last_name: str
    role: str
    is_active: bool
    email_verified: bool
    last_login: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            last_name=user.last_name,
            role=user.role,
            is_active=user.is_active,
            email_verified=user.email_verified,
            last_login=user.last_login,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class TokenGrantResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    expires: datetime

    @classmethod
    def from_grant(cls, grant: TokenGrant) -> "TokenGrantResponse":
        return cls(token=grant.token, expires=grant.expires)


class AuthTokensResponse(BaseModel):
    """Access/refresh pair. Response for POST /auth/refresh-tokens."""

    model_config = ConfigDict(frozen=True)

    access: TokenGrantResponse
    refresh: TokenGrantResponse

    @classmethod
    def from_tokens(cls, tokens: AuthTokens) -> "AuthTokensResponse":
        return cls(
            access=TokenGrantResponse.from_grant(tokens.access),
            refresh=TokenGrantResponse.from_grant(tokens.refresh),
        )


class AuthResponse(BaseModel):
    """Response for POST /auth/register and POST /auth/login."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    tokens: AuthTokensResponse


class UserPageResponse(BaseModel):
    """Response for GET /api/v1/users."""

    model_config = ConfigDict(frozen=True)

    results: list[UserResponse]
    page: int
    limit: int
    total_pages: int
    total_results: int

    @classmethod
    def from_page(cls, page: Page[User]) -> "UserPageResponse":
        return cls(
            results=[UserResponse.from_user(u) for u in page.results],
            page=page.page,
            limit=page.limit,
            total_pages=page.total_pages,
            total_results=page.total_results,
        )


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
