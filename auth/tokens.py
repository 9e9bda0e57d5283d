"""
auth/tokens.py -- Signed, time-bound tokens for every auth purpose.

Security design decisions:
  JWT: python-jose with HS256. Every token carries sub (user id), iat, exp,
       type (the TokenPurpose) and a random jti. The jti keeps two tokens for
       the same user and purpose distinct even when issued in the same second,
       which refresh rotation and the unique token column both depend on.

  Purposes: one table (_policies) decides each purpose's lifetime and whether
       the token is persisted. Access tokens are stateless; refresh,
       reset-password and verify-email tokens are also stored so they can be
       redeemed exactly once (see auth/service.py).

  Errors: decode_token() raises a TokenError subclass instead of returning
       None. Callers collapse them into Unauthorized with their own message,
       so the distinction never reaches a client.

  SECRET_KEY: sourced from core.config.get_settings(). The secret argument
       exists so tests can mint tokens signed with a foreign key.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.models import TokenPurpose
from core.config import Settings, get_settings

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """Base class for every reason a token is not usable."""


class InvalidSignature(TokenError):
    """Signature does not verify, or the token is not a well-formed JWT."""


class TokenExpired(TokenError):
    pass


class WrongTokenPurpose(TokenError):
    pass


class TokenNotFound(TokenError):
    """Token verifies but has no active stored record (consumed or blacklisted)."""


# ---------------------------------------------------------------------------
# Purpose policy table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenPolicy:
    lifetime: timedelta
    persisted: bool


def _build_policies(settings: Settings) -> dict[TokenPurpose, TokenPolicy]:
    return {
        TokenPurpose.ACCESS: TokenPolicy(timedelta(minutes=settings.access_token_expire_minutes), persisted=False),
        TokenPurpose.REFRESH: TokenPolicy(timedelta(days=settings.refresh_token_expire_days), persisted=True),
        TokenPurpose.RESET_PASSWORD: TokenPolicy(
            timedelta(minutes=settings.reset_password_token_expire_minutes), persisted=True
        ),
        TokenPurpose.VERIFY_EMAIL: TokenPolicy(
            timedelta(minutes=settings.verify_email_token_expire_minutes), persisted=True
        ),
    }


_policies = _build_policies(_settings)


def policy_for(purpose: TokenPurpose) -> TokenPolicy:
    return _policies[TokenPurpose(purpose)]


def expiry_for(purpose: TokenPurpose, now: datetime | None = None) -> datetime:
    """Expiry timestamp for a token of this purpose issued now.

    Truncated to whole seconds because the JWT exp claim is an integer; the
    stored record and the token then agree exactly.
    """
    now = now or datetime.now(timezone.utc)
    return (now + policy_for(purpose).lifetime).replace(microsecond=0)


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenPayload:
    subject_id: str
    purpose: TokenPurpose
    issued_at: datetime
    expires: datetime


def generate_token(
    user_id: str,
    expires: datetime,
    purpose: TokenPurpose,
    secret: str | None = None,
) -> str:
    """Encode a signed JWT for user_id that is valid until expires.

    expires may already be in the past; tests use that to mint expired tokens.
    """
    payload = {
        "sub": str(user_id),
        "iat": int(datetime.now(timezone.utc).timestamp()),
        "exp": int(expires.timestamp()),
        "type": TokenPurpose(purpose).value,
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(payload, secret or _settings.secret_key, algorithm=_ALGORITHM)


def decode_token(
    token: str,
    purpose: TokenPurpose | None = None,
    secret: str | None = None,
) -> TokenPayload:
    """Verify signature and expiry, then optionally the purpose.

    Raises:
        TokenExpired:       exp is in the past.
        InvalidSignature:   bad signature, malformed token, or missing claims.
        WrongTokenPurpose:  purpose was given and the token's type differs.
    """
    try:
        claims = jwt.decode(token, secret or _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpired("token has expired") from exc
    except JWTError as exc:
        raise InvalidSignature("token could not be verified") from exc

    try:
        payload = TokenPayload(
            subject_id=str(claims["sub"]),
            purpose=TokenPurpose(claims["type"]),
            issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
            expires=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        )
    except (KeyError, ValueError, TypeError) as exc:
        raise InvalidSignature("token is missing required claims") from exc

    if purpose is not None and payload.purpose != TokenPurpose(purpose):
        raise WrongTokenPurpose(f"expected a {TokenPurpose(purpose).value} token")
    return payload
