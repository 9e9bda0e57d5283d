"""
auth/models.py -- Domain dataclasses and enums for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services
do the work; these only own the shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MODERATOR = "moderator"
    EDITOR = "editor"
    USER = "user"


class Permission(str, Enum):
    MANAGE_USERS = "manage_users"
    READ_USERS = "read_users"
    CREATE_USERS = "create_users"
    UPDATE_USERS = "update_users"
    DELETE_USERS = "delete_users"


class TokenPurpose(str, Enum):
    """What a token may be used for. Carried in the JWT "type" claim."""

    ACCESS = "access"
    REFRESH = "refresh"
    RESET_PASSWORD = "reset_password"
    VERIFY_EMAIL = "verify_email"


@dataclass
class User:
    """An account that can authenticate against Warden.

    email is stored lower-cased; lookups lower-case their input too, which
    makes the unique constraint effectively case-insensitive.

    hashed_password is private: api/models.UserResponse never exposes it.
    """

    email: str
    name: str
    last_name: str
    hashed_password: str
    role: str = Role.USER.value
    id: str | None = None
    is_active: bool = True
    email_verified: bool = False
    last_login: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Token:
    """A persisted refresh, reset-password, or verify-email token.

    Access tokens are stateless and never stored. user_id is a soft reference:
    deleting a user does not delete their tokens, and redemption re-checks
    that the user still exists.
    """

    token: str
    user_id: str
    purpose: str
    expires: datetime
    blacklisted: bool = False
    id: int | None = None
    created_at: str | None = None


@dataclass
class TokenGrant:
    token: str
    expires: datetime


@dataclass
class AuthTokens:
    """The access/refresh pair handed to a client after login or refresh."""

    access: TokenGrant
    refresh: TokenGrant
