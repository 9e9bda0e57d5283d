"""
tests/test_authorization.py -- Unit tests for authorize_request() in auth/dependencies.py.

Covers the gate's linear chain directly, without HTTP:
  - missing, foreign-secret, expired, wrong-purpose tokens -> Unauthorized
  - subject deleted or deactivated -> Unauthorized
  - permission granted (directly or by implication) -> allowed
  - permission missing -> Forbidden, unless the caller owns the resource
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from auth.dependencies import authorize_request
from auth.models import Permission, Role, TokenPurpose, User
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import generate_token
from auth.users import UserService
from core.errors import Forbidden, Unauthorized


def _access_token(user_id: str, minutes: int = 5, secret: str | None = None) -> str:
    expires = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return generate_token(user_id, expires, TokenPurpose.ACCESS, secret=secret)


@pytest.fixture
def admin(user_service: UserService) -> User:
    return user_service.create_user(
        email="root@example.com", password="password1", name="Root", last_name="Admin", role=Role.ADMIN.value
    )


@pytest.fixture
def moderator(user_service: UserService) -> User:
    return user_service.create_user(
        email="mod@example.com", password="password1", name="Mo", last_name="Derator", role=Role.MODERATOR.value
    )


class TestAuthentication:
    def test_valid_token_returns_user(self, user_store: UserStore, alice: User) -> None:
        assert authorize_request(user_store, _access_token(alice.id)).id == alice.id

    def test_missing_token(self, user_store: UserStore) -> None:
        with pytest.raises(Unauthorized) as exc_info:
            authorize_request(user_store, None)
        assert exc_info.value.message == "Please authenticate"

    def test_foreign_secret(self, user_store: UserStore, admin: User) -> None:
        token = _access_token(admin.id, secret="x" * 64)
        with pytest.raises(Unauthorized):
            authorize_request(user_store, token)

    def test_expired_token(self, user_store: UserStore, alice: User) -> None:
        with pytest.raises(Unauthorized):
            authorize_request(user_store, _access_token(alice.id, minutes=-1))

    def test_refresh_token_is_not_an_access_token(
        self, user_store: UserStore, auth_service: AuthService, alice: User
    ) -> None:
        refresh = auth_service.issue_auth_tokens(alice).refresh.token
        with pytest.raises(Unauthorized):
            authorize_request(user_store, refresh)

    def test_deleted_subject(self, user_store: UserStore, user_service: UserService, alice: User) -> None:
        token = _access_token(alice.id)
        user_service.delete_user_by_id(alice.id)
        with pytest.raises(Unauthorized):
            authorize_request(user_store, token)

    def test_deactivated_subject(self, user_store: UserStore, user_service: UserService, alice: User) -> None:
        token = _access_token(alice.id)
        user_service.update_user_by_id(alice.id, is_active=False)
        with pytest.raises(Unauthorized):
            authorize_request(user_store, token)


class TestPermissions:
    def test_admin_passes_through_implication(self, user_store: UserStore, admin: User) -> None:
        user = authorize_request(user_store, _access_token(admin.id), [Permission.READ_USERS])
        assert user.id == admin.id

    def test_moderator_can_read(self, user_store: UserStore, moderator: User) -> None:
        authorize_request(user_store, _access_token(moderator.id), ["read_users"])

    def test_moderator_cannot_manage(self, user_store: UserStore, moderator: User, alice: User) -> None:
        with pytest.raises(Forbidden):
            authorize_request(user_store, _access_token(moderator.id), ["manage_users"], alice.id)

    def test_user_without_permission_is_forbidden(self, user_store: UserStore, alice: User, admin: User) -> None:
        with pytest.raises(Forbidden):
            authorize_request(user_store, _access_token(alice.id), ["read_users"], admin.id)

    def test_no_permissions_required(self, user_store: UserStore, alice: User) -> None:
        assert authorize_request(user_store, _access_token(alice.id), []).id == alice.id


class TestOwnership:
    def test_owner_is_allowed_without_permission(self, user_store: UserStore, alice: User) -> None:
        user = authorize_request(user_store, _access_token(alice.id), ["manage_users"], alice.id)
        assert user.id == alice.id

    def test_no_resource_owner_means_forbidden(self, user_store: UserStore, alice: User) -> None:
        with pytest.raises(Forbidden):
            authorize_request(user_store, _access_token(alice.id), ["manage_users"], None)

    def test_other_owner_is_forbidden(self, user_store: UserStore, alice: User) -> None:
        with pytest.raises(Forbidden):
            authorize_request(user_store, _access_token(alice.id), ["manage_users"], "f" * 32)
