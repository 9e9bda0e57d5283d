"""
auth/dependencies.py -- Per-request authorization gate and its FastAPI wiring.

authorize_request() is the whole decision procedure, written as a linear
chain where each step either proceeds or raises:

  1. Missing bearer token, or it fails decode_token(purpose=access)  -> Unauthorized
  2. Token subject not found or deactivated                          -> Unauthorized
  3. (authorize() stores the user on request.state.user)
  4. No permissions required                                         -> allow
  5. Role's expanded permissions cover every required one            -> allow
  6. Path user_id equals the caller's id (compared as strings)       -> allow
  7. Otherwise                                                       -> Forbidden

Step 6 is the ownership exception: a user may always act on their own
record, whatever their role grants.

authorize(*permissions) returns a dependency for route signatures:

    @router.get("/users/{user_id}")
    def get_user(user: User = Depends(authorize(Permission.READ_USERS))): ...

Layer rule: no imports from api/. fastapi is imported for Request only,
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from fastapi import Request

from auth.models import TokenPurpose, User
from auth.permissions import has_permissions
from auth.store import UserStore
from auth.tokens import TokenError, decode_token
from core.errors import Forbidden, Unauthorized

_OWNER_PATH_PARAM = "user_id"
_AUTHENTICATE = "Please authenticate"


def bearer_token(request: Request) -> str | None:
    """Extract the token from an "Authorization: Bearer <token>" header."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def authorize_request(
    user_store: UserStore,
    token: str | None,
    required_permissions: Iterable[str] = (),
    resource_owner_id: str | None = None,
) -> User:
    """Return the authenticated user or raise Unauthorized / Forbidden."""
    if not token:
        raise Unauthorized(_AUTHENTICATE)
    try:
        payload = decode_token(token, purpose=TokenPurpose.ACCESS)
    except TokenError as exc:
        raise Unauthorized(_AUTHENTICATE) from exc

    user = user_store.get_by_id(payload.subject_id)
    if user is None or not user.is_active:
        raise Unauthorized(_AUTHENTICATE)

    required = tuple(required_permissions)
    if required and not has_permissions(user.role, required):
        if resource_owner_id is None or str(resource_owner_id) != str(user.id):
            raise Forbidden()
    return user


def authorize(*required_permissions: str) -> Callable[[Request], User]:
    """Build a dependency that authenticates the request and checks permissions.

    With no arguments it only requires a valid access token.
    """

    def dependency(request: Request) -> User:
        user = authorize_request(
            request.app.state.user_store,
            bearer_token(request),
            required_permissions,
            request.path_params.get(_OWNER_PATH_PARAM),
        )
        request.state.user = user
        return user

    return dependency


get_current_user = authorize()
