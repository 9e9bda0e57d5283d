"""
tests/test_auth_service.py -- Unit tests for auth/service.py (AuthService).

Covers:
  - Login round trip; unknown email, wrong password and deactivated account
    all fail with the same message
  - Refresh tokens are single use and rotate
  - Logout consumes the refresh token; a second logout is NotFound
  - Reset password changes the hash and invalidates every outstanding reset token
  - Verify email marks the user verified and is single use
  - Tokens for a deleted user cannot be redeemed
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from auth.credentials import verify_password
from auth.models import TokenPurpose, User
from auth.service import AuthService
from auth.store import TokenStore
from auth.tokens import decode_token, generate_token
from auth.users import UserService
from core.errors import NotFound, Unauthorized

PASSWORD = "password1"


class TestLogin:
    def test_round_trip(self, auth_service: AuthService, alice: User) -> None:
        user = auth_service.login_with_email_and_password("alice@example.com", PASSWORD)
        assert user.id == alice.id

    def test_email_is_case_insensitive(self, auth_service: AuthService, alice: User) -> None:
        assert auth_service.login_with_email_and_password("ALICE@Example.com", PASSWORD).id == alice.id

    def test_records_last_login(self, auth_service: AuthService, user_service: UserService, alice: User) -> None:
        assert alice.last_login is None
        auth_service.login_with_email_and_password("alice@example.com", PASSWORD)
        assert user_service.get_user_by_id(alice.id).last_login is not None

    def test_single_character_mutation_fails(self, auth_service: AuthService, alice: User) -> None:
        for wrong in ("password2", "Password1", "password", "password1 "):
            with pytest.raises(Unauthorized) as exc_info:
                auth_service.login_with_email_and_password("alice@example.com", wrong)
            assert exc_info.value.message == "Incorrect email or password"

    def test_unknown_email_gets_the_same_error(self, auth_service: AuthService, alice: User) -> None:
        with pytest.raises(Unauthorized) as exc_info:
            auth_service.login_with_email_and_password("nobody@example.com", PASSWORD)
        assert exc_info.value.message == "Incorrect email or password"

    def test_deactivated_user_cannot_log_in(
        self, auth_service: AuthService, user_service: UserService, alice: User
    ) -> None:
        user_service.update_user_by_id(alice.id, is_active=False)
        with pytest.raises(Unauthorized) as exc_info:
            auth_service.login_with_email_and_password("alice@example.com", PASSWORD)
        assert exc_info.value.message == "Incorrect email or password"


class TestIssueAuthTokens:
    def test_pair_purposes_and_persistence(
        self, auth_service: AuthService, token_store: TokenStore, alice: User
    ) -> None:
        tokens = auth_service.issue_auth_tokens(alice)
        assert decode_token(tokens.access.token, purpose=TokenPurpose.ACCESS).subject_id == alice.id
        assert decode_token(tokens.refresh.token, purpose=TokenPurpose.REFRESH).subject_id == alice.id
        assert token_store.find_active(tokens.refresh.token, TokenPurpose.REFRESH, alice.id) is not None
        assert tokens.refresh.expires > tokens.access.expires


class TestRefresh:
    def test_rotation_is_single_use(self, auth_service: AuthService, alice: User) -> None:
        first = auth_service.issue_auth_tokens(alice)
        second = auth_service.refresh_auth(first.refresh.token)
        assert second.refresh.token != first.refresh.token

        with pytest.raises(Unauthorized) as exc_info:
            auth_service.refresh_auth(first.refresh.token)
        assert exc_info.value.message == "Please authenticate"

        third = auth_service.refresh_auth(second.refresh.token)
        assert decode_token(third.access.token, purpose=TokenPurpose.ACCESS).subject_id == alice.id

    def test_access_token_cannot_refresh(self, auth_service: AuthService, alice: User) -> None:
        tokens = auth_service.issue_auth_tokens(alice)
        with pytest.raises(Unauthorized):
            auth_service.refresh_auth(tokens.access.token)

    def test_validly_signed_but_unstored_token_fails(self, auth_service: AuthService, alice: User) -> None:
        expires = datetime.now(timezone.utc) + timedelta(days=1)
        forged = generate_token(alice.id, expires, TokenPurpose.REFRESH)
        with pytest.raises(Unauthorized):
            auth_service.refresh_auth(forged)

    def test_deleted_user_cannot_refresh(
        self, auth_service: AuthService, user_service: UserService, alice: User
    ) -> None:
        tokens = auth_service.issue_auth_tokens(alice)
        user_service.delete_user_by_id(alice.id)
        with pytest.raises(Unauthorized):
            auth_service.refresh_auth(tokens.refresh.token)

    def test_deactivated_user_cannot_redeem_tokens(
        self, auth_service: AuthService, user_service: UserService, alice: User
    ) -> None:
        tokens = auth_service.issue_auth_tokens(alice)
        reset = auth_service.generate_reset_password_token("alice@example.com")
        verify = auth_service.generate_verify_email_token(alice)
        user_service.update_user_by_id(alice.id, is_active=False)

        with pytest.raises(Unauthorized):
            auth_service.refresh_auth(tokens.refresh.token)
        with pytest.raises(Unauthorized):
            auth_service.reset_password(reset, "brandnew42")
        with pytest.raises(Unauthorized):
            auth_service.verify_email(verify)


class TestLogout:
    def test_logout_then_logout_again(self, auth_service: AuthService, alice: User) -> None:
        tokens = auth_service.issue_auth_tokens(alice)
        auth_service.logout(tokens.refresh.token)
        with pytest.raises(NotFound):
            auth_service.logout(tokens.refresh.token)

    def test_refresh_after_logout_fails(self, auth_service: AuthService, alice: User) -> None:
        tokens = auth_service.issue_auth_tokens(alice)
        auth_service.logout(tokens.refresh.token)
        with pytest.raises(Unauthorized):
            auth_service.refresh_auth(tokens.refresh.token)

    def test_unknown_token(self, auth_service: AuthService) -> None:
        with pytest.raises(NotFound):
            auth_service.logout("never-issued")


class TestResetPassword:
    def test_unknown_email(self, auth_service: AuthService) -> None:
        with pytest.raises(NotFound) as exc_info:
            auth_service.generate_reset_password_token("nobody@example.com")
        assert exc_info.value.message == "No users found with this email"

    def test_reset_changes_hash_and_invalidates_all_reset_tokens(
        self, auth_service: AuthService, user_service: UserService, alice: User
    ) -> None:
        first = auth_service.generate_reset_password_token("alice@example.com")
        second = auth_service.generate_reset_password_token("alice@example.com")

        auth_service.reset_password(second, "brandnew42")

        updated = user_service.get_user_by_id(alice.id)
        assert updated.hashed_password != alice.hashed_password
        assert verify_password("brandnew42", updated.hashed_password)
        for used in (first, second):
            with pytest.raises(Unauthorized) as exc_info:
                auth_service.reset_password(used, "another77")
            assert exc_info.value.message == "Password reset failed"

    def test_old_password_stops_working(self, auth_service: AuthService, alice: User) -> None:
        token = auth_service.generate_reset_password_token("alice@example.com")
        auth_service.reset_password(token, "brandnew42")
        with pytest.raises(Unauthorized):
            auth_service.login_with_email_and_password("alice@example.com", PASSWORD)
        assert auth_service.login_with_email_and_password("alice@example.com", "brandnew42").id == alice.id

    def test_refresh_token_cannot_reset(self, auth_service: AuthService, alice: User) -> None:
        tokens = auth_service.issue_auth_tokens(alice)
        with pytest.raises(Unauthorized):
            auth_service.reset_password(tokens.refresh.token, "brandnew42")


class TestVerifyEmail:
    def test_verify_marks_user_and_is_single_use(
        self, auth_service: AuthService, user_service: UserService, alice: User
    ) -> None:
        token = auth_service.generate_verify_email_token(alice)
        auth_service.verify_email(token)
        assert user_service.get_user_by_id(alice.id).email_verified is True

        with pytest.raises(Unauthorized) as exc_info:
            auth_service.verify_email(token)
        assert exc_info.value.message == "Email verification failed"

    def test_expired_token(self, auth_service: AuthService, token_store: TokenStore, alice: User) -> None:
        expires = (datetime.now(timezone.utc) - timedelta(minutes=1)).replace(microsecond=0)
        token = generate_token(alice.id, expires, TokenPurpose.VERIFY_EMAIL)
        token_store.save(token, alice.id, expires, TokenPurpose.VERIFY_EMAIL)
        with pytest.raises(Unauthorized):
            auth_service.verify_email(token)
