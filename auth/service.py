"""
auth/service.py -- Login, token pairs, and single-use token redemption.

AuthService composes the credential helpers, the token codec, and the two
stores. Every redemption flow (refresh, reset password, verify email) has the
same shape:

    decode_token(purpose=P) -> TokenStore.find_active(token, P, sub)
        -> load user -> act -> delete consumed record(s)

Any failure along that chain is collapsed into one Unauthorized with a fixed,
operation-specific message. Clients never learn whether a token was expired,
forged, already used, or belonged to a deleted account.

Known limitation: find_active() and the following delete are two separate
statements. Two concurrent redemptions of the same token can both pass the
lookup before either deletes; the store has no cross-row transaction here.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from auth.credentials import DUMMY_HASH, verify_password
from auth.models import AuthTokens, Token, TokenGrant, TokenPurpose, User
from auth.store import TokenStore
from auth.tokens import TokenError, TokenNotFound, decode_token, expiry_for, generate_token, policy_for
from auth.users import UserService
from core.errors import NotFound, Unauthorized

logger = logging.getLogger("warden.auth")


class AuthService:
    def __init__(self, users: UserService, tokens: TokenStore) -> None:
        self.users = users
        self.tokens = tokens

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def _issue(self, user_id: str, purpose: TokenPurpose) -> TokenGrant:
        expires = expiry_for(purpose)
        token = generate_token(user_id, expires, purpose)
        if policy_for(purpose).persisted:
            self.tokens.save(token, user_id, expires, purpose)
        return TokenGrant(token=token, expires=expires)

    def issue_auth_tokens(self, user: User) -> AuthTokens:
        """Issue a stateless access token and a persisted refresh token."""
        return AuthTokens(
            access=self._issue(user.id, TokenPurpose.ACCESS),
            refresh=self._issue(user.id, TokenPurpose.REFRESH),
        )

    def generate_reset_password_token(self, email: str) -> str:
        user = self.users.get_user_by_email(email)
        if user is None:
            raise NotFound("No users found with this email")
        return self._issue(user.id, TokenPurpose.RESET_PASSWORD).token

    def generate_verify_email_token(self, user: User) -> str:
        return self._issue(user.id, TokenPurpose.VERIFY_EMAIL).token

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def login_with_email_and_password(self, email: str, password: str) -> User:
        """Return the user for a correct email/password pair.

        Unknown email, wrong password, and deactivated account all raise the
        same Unauthorized. bcrypt runs in every case so response time does not
        reveal which one happened.
        """
        user = self.users.get_user_by_email(email)
        if user is None:
            verify_password(password, DUMMY_HASH)
            raise Unauthorized("Incorrect email or password")
        if not verify_password(password, user.hashed_password) or not user.is_active:
            raise Unauthorized("Incorrect email or password")
        self.users.store.update_last_login(user.id)
        logger.info("User %s logged in", user.id)
        return user

    # ------------------------------------------------------------------
    # Redemption
    # ------------------------------------------------------------------

    def _redeem(self, token: str, purpose: TokenPurpose) -> tuple[Token, User]:
        """Validate a persisted token and load its owner, or raise TokenError."""
        payload = decode_token(token, purpose=purpose)
        record = self.tokens.find_active(token, purpose, payload.subject_id)
        if record is None:
            raise TokenNotFound("no active record for token")
        user = self.users.get_user_by_id(record.user_id)
        if user is None or not user.is_active:
            raise TokenNotFound("token subject no longer exists or is deactivated")
        return record, user

    def logout(self, refresh_token: str) -> None:
        record = self.tokens.find_active(refresh_token, TokenPurpose.REFRESH)
        if record is None:
            raise NotFound()
        self.tokens.delete_one(record)
        logger.info("User %s logged out", record.user_id)

    def refresh_auth(self, refresh_token: str) -> AuthTokens:
        """Rotate a refresh token: consume it and issue a fresh pair."""
        try:
            record, user = self._redeem(refresh_token, TokenPurpose.REFRESH)
        except TokenError as exc:
            raise Unauthorized("Please authenticate") from exc
        self.tokens.delete_one(record)
        logger.info("Refresh token rotated for user %s", user.id)
        return self.issue_auth_tokens(user)

    def reset_password(self, reset_password_token: str, new_password: str) -> None:
        """Set a new password and invalidate every outstanding reset token for the user."""
        try:
            _, user = self._redeem(reset_password_token, TokenPurpose.RESET_PASSWORD)
        except TokenError as exc:
            raise Unauthorized("Password reset failed") from exc
        self.users.update_user_by_id(user.id, password=new_password)
        self.tokens.delete_all_by_purpose(user.id, TokenPurpose.RESET_PASSWORD)
        logger.info("Password reset for user %s", user.id)

    def verify_email(self, verify_email_token: str) -> None:
        try:
            _, user = self._redeem(verify_email_token, TokenPurpose.VERIFY_EMAIL)
        except TokenError as exc:
            raise Unauthorized("Email verification failed") from exc
        self.tokens.delete_all_by_purpose(user.id, TokenPurpose.VERIFY_EMAIL)
        self.users.update_user_by_id(user.id, email_verified=True)
        logger.info("Email verified for user %s", user.id)
