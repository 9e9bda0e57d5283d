"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper. UserStore and TokenStore are the
repositories; _row_to_user / _row_to_token are the mappers. Services and
route code never touch SQL directly.

The stores are deliberately document-shaped: find by id, find one by
equality filter, insert, update by id, delete by id, delete many by filter.
No joins and no multi-statement transactions. Each call opens its own
connection from the engine pool, so a token deleted by one request is
invisible to the next lookup in any other thread or process.

Security:
  All queries use bound parameters. No f-strings in SQL. Sort fields for
  query_users() are checked against a whitelist of column names.

DB URL: Settings.database_url (SQLite file next to the project by default).

Layer rule: no imports from api/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.models import Token, TokenPurpose, User
from core.query import Page, QueryOptions

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("email", String(254), nullable=False, unique=True),  # stored lower-cased
    Column("name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default="user"),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    Column("email_verified", Boolean, nullable=False, server_default="0"),
    Column("last_login", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_tokens = Table(
    "tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token", Text, nullable=False, unique=True),
    Column("user_id", String(32), nullable=False, index=True),  # soft reference, no FK
    Column("purpose", String(20), nullable=False),
    Column("expires", String(32), nullable=False),  # ISO 8601 UTC, second precision
    Column("blacklisted", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

_USER_SORT_FIELDS = {"name", "last_name", "email", "role", "created_at", "updated_at", "last_login"}


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_db_engine(db_url: str) -> Engine:
    """Create the shared engine and make sure both tables exist."""
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite") and "mode=memory" not in db_url:
        event.listen(engine, "connect", _set_wal_mode)
    _metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def _new_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        engine = create_db_engine("sqlite:///warden.db")
        store = UserStore(engine)
        user_id = store.create_user(User(email="a@b.co", name="A", last_name="B", hashed_password=...))
        user = store.get_by_email("A@B.co")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        UserService checks first; the constraint covers the race between two
        concurrent registrations.
        """
        user_id = _new_id()
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email.strip().lower(),
                    name=user.name,
                    last_name=user.last_name,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    is_active=user.is_active,
                    email_verified=user.email_verified,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return user_id

    def get_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == str(user_id))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email, case-insensitively. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email.strip().lower())).fetchone()
        return _row_to_user(row) if row is not None else None

    def is_email_taken(self, email: str, exclude_user_id: str | None = None) -> bool:
        query = select(_users.c.id).where(_users.c.email == email.strip().lower())
        if exclude_user_id is not None:
            query = query.where(_users.c.id != str(exclude_user_id))
        with self.engine.connect() as conn:
            return conn.execute(query).first() is not None

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: email, name, last_name, hashed_password, role,
        is_active, email_verified, last_login. updated_at is always stamped.

        Returns True if a row was updated, False if user_id was not found.
        """
        if "email" in fields:
            fields["email"] = fields["email"].strip().lower()
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == str(user_id)).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, user_id: str) -> None:
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == str(user_id)).values(last_login=_now_iso()))
            conn.commit()

    def delete_user(self, user_id: str) -> bool:
        """Delete a user record. Tokens owned by the user are left in place.

        Orphaned tokens are harmless: every redemption path re-loads the user
        and fails when it is gone.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == str(user_id)))
            conn.commit()
        return result.rowcount > 0

    def query_users(self, filters: dict[str, str], options: QueryOptions) -> Page[User]:
        """Return one page of users matching equality filters on name and/or role.

        Unknown filter keys and sort fields raise ValueError; the route layer
        only passes whitelisted ones. Without an explicit sort the result is
        ordered by creation time.
        """
        conditions = []
        for key, value in filters.items():
            if key not in ("name", "role"):
                raise ValueError(f"Unsupported user filter: {key!r}")
            conditions.append(_users.c[key] == value)

        order_by = []
        for field_name, ascending in options.sort:
            if field_name not in _USER_SORT_FIELDS:
                raise ValueError(f"Unsupported sort field: {field_name!r}")
            column = _users.c[field_name]
            order_by.append(column.asc() if ascending else column.desc())
        order_by.append(_users.c.created_at.asc())
        order_by.append(_users.c.id.asc())

        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_users).where(*conditions)).scalar() or 0
            rows = conn.execute(
                _users.select().where(*conditions).order_by(*order_by).limit(options.limit).offset(options.offset)
            ).fetchall()
        return Page(
            results=[_row_to_user(r) for r in rows],
            page=options.page,
            limit=options.limit,
            total_results=total,
        )


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class TokenStore:
    """Repository for persisted (refresh, reset-password, verify-email) tokens.

    There is no cache in front of this store. Invalidation by delete is
    visible to the very next find_active() call.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def save(
        self,
        token: str,
        user_id: str,
        expires: datetime,
        purpose: TokenPurpose,
        blacklisted: bool = False,
    ) -> Token:
        """Insert a token record and return it with its assigned id."""
        if TokenPurpose(purpose) is TokenPurpose.ACCESS:
            raise ValueError("Access tokens are stateless and are never stored.")
        created_at = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _tokens.insert().values(
                    token=token,
                    user_id=str(user_id),
                    purpose=TokenPurpose(purpose).value,
                    expires=_to_iso(expires),
                    blacklisted=blacklisted,
                    created_at=created_at,
                )
            )
            conn.commit()
            token_id = result.inserted_primary_key[0]
        return Token(
            id=token_id,
            token=token,
            user_id=str(user_id),
            purpose=TokenPurpose(purpose).value,
            expires=expires,
            blacklisted=blacklisted,
            created_at=created_at,
        )

    def find_active(self, token: str, purpose: TokenPurpose, user_id: str | None = None) -> Token | None:
        """Return the non-blacklisted record for this exact token and purpose.

        user_id narrows the match when given (redemption passes the JWT
        subject); logout passes None and matches any owner.
        """
        query = _tokens.select().where(
            (_tokens.c.token == token)
            & (_tokens.c.purpose == TokenPurpose(purpose).value)
            & (_tokens.c.blacklisted.is_(False))
        )
        if user_id is not None:
            query = query.where(_tokens.c.user_id == str(user_id))
        with self.engine.connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_token(row) if row is not None else None

    def delete_one(self, record: Token) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_tokens.delete().where(_tokens.c.id == record.id))
            conn.commit()
        return result.rowcount > 0

    def delete_all_by_purpose(self, user_id: str, purpose: TokenPurpose) -> int:
        """Delete every record of one purpose for a user. Returns rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _tokens.delete().where(
                    (_tokens.c.user_id == str(user_id)) & (_tokens.c.purpose == TokenPurpose(purpose).value)
                )
            )
            conn.commit()
        return result.rowcount

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete all records past their expiry. Returns rows removed.

        Expiry strings share one fixed UTC format, so string comparison orders
        them correctly.
        """
        cutoff = _to_iso(now or datetime.now(timezone.utc))
        with self.engine.connect() as conn:
            result = conn.execute(_tokens.delete().where(_tokens.c.expires < cutoff))
            conn.commit()
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        last_name=row.last_name,
        hashed_password=row.hashed_password,
        role=row.role,
        is_active=bool(row.is_active),
        email_verified=bool(row.email_verified),
        last_login=row.last_login,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_token(row) -> Token:
    return Token(
        id=row.id,
        token=row.token,
        user_id=row.user_id,
        purpose=row.purpose,
        expires=datetime.fromisoformat(row.expires),
        blacklisted=bool(row.blacklisted),
        created_at=row.created_at,
    )
