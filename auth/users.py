"""
auth/users.py -- User account rules on top of UserStore.

UserService owns the two invariants the store cannot express on its own:
emails are unique (checked here, backed by the UNIQUE constraint for races)
and passwords are only ever stored hashed. Both registration and admin
account creation go through create_user().

Errors are raised as core.errors types; the API layer renders them.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.credentials import hash_password
from auth.models import Role, User
from auth.store import UserStore
from core.errors import AppError, BadRequest, NotFound
from core.query import Page, QueryOptions

logger = logging.getLogger("warden.auth")

_UPDATABLE_FIELDS = {"email", "name", "last_name", "password", "role", "is_active", "email_verified"}


class UserService:
    def __init__(self, store: UserStore) -> None:
        self.store = store

    def create_user(
        self,
        email: str,
        password: str,
        name: str,
        last_name: str,
        role: str = Role.USER.value,
    ) -> User:
        """Create an account. Raises BadRequest if the email is already registered."""
        if self.store.is_email_taken(email):
            raise BadRequest("Email already taken")
        user = User(
            email=email,
            name=name,
            last_name=last_name,
            hashed_password=hash_password(password),
            role=Role(role).value,
        )
        try:
            user_id = self.store.create_user(user)
        except IntegrityError as exc:
            raise BadRequest("Email already taken") from exc
        logger.info("User %s created with role %s", user_id, user.role)
        return self._reload(user_id)

    def query_users(self, filters: dict[str, str], options: QueryOptions) -> Page[User]:
        return self.store.query_users(filters, options)

    def get_user_by_id(self, user_id: str) -> User | None:
        return self.store.get_by_id(user_id)

    def get_user_by_email(self, email: str) -> User | None:
        return self.store.get_by_email(email)

    def update_user_by_id(self, user_id: str, **changes) -> User:
        """Apply changes to a user and return the updated record.

        A plaintext "password" change is hashed before storage. Changing the
        email to one held by another account raises BadRequest.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")

        user = self.store.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        if "email" in changes and self.store.is_email_taken(changes["email"], exclude_user_id=user.id):
            raise BadRequest("Email already taken")

        fields = dict(changes)
        if "password" in fields:
            fields["hashed_password"] = hash_password(fields.pop("password"))
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
        if fields:
            try:
                self.store.update_user(user.id, **fields)
            except IntegrityError as exc:
                raise BadRequest("Email already taken") from exc
        return self._reload(user.id)

    def delete_user_by_id(self, user_id: str) -> User:
        user = self.store.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        self.store.delete_user(user.id)
        logger.info("User %s deleted", user.id)
        return user

    def _reload(self, user_id: str) -> User:
        # A row that vanishes right after its own write is a bug, not a client error.
        user = self.store.get_by_id(user_id)
        if user is None:
            raise AppError(f"User {user_id} missing after write", is_operational=False)
        return user
