"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Service and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  hashed_password is left out of every SELECT unless the caller passes
  include_password=True. Only login and password change need it; everything
  else (profile reads, session snapshots, admin listings) gets a User with
  hashed_password=None and cannot leak it by accident.

  UNIQUE(email) is enforced by the database. create_user() and update_user()
  let sqlalchemy.exc.IntegrityError propagate; the service translates it into
  DuplicateEmail. Application-level "does this email exist" checks are only a
  fast path -- the index is what closes the race between two concurrent
  activations of the same email.

DB path: auth/elearning_users.db unless DATABASE_URL says otherwise.

Layer rule: no imports from api/, cache/, mail/, or media/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

from auth.models import Avatar, User

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'elearning_users.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),  # NULL for social-auth users
    Column("role", String(30), nullable=False, server_default="user"),
    Column("is_verified", Boolean, nullable=False, server_default="0"),
    Column("avatar_public_id", Text),
    Column("avatar_url", Text),
    Column("created_at", String(32), nullable=False),
)

# Default projection: every column except the password hash.
_PUBLIC_COLUMNS = [c for c in _users.c if c.name != "hashed_password"]

_UPDATABLE = {"name", "email", "hashed_password", "role", "is_verified", "avatar_public_id", "avatar_url"}


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode; PRAGMAs are per-connection in SQLite."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore()
        uid = store.create_user(User(name="Ada", email="ada@example.com", hashed_password=hash_password("pw")))
        user = store.get_by_email("ada@example.com")                        # no hash
        user = store.get_by_email("ada@example.com", include_password=True) # with hash
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def _select(self, include_password: bool):
        return select(_users) if include_password else select(*_PUBLIC_COLUMNS)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    is_verified=user.is_verified,
                    avatar_public_id=user.avatar.public_id if user.avatar else None,
                    avatar_url=user.avatar.url if user.avatar else None,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable columns on an existing user.

        Accepted fields: name, email, hashed_password, role, is_verified,
        avatar_public_id, avatar_url. Unknown fields raise ValueError.
        Raises IntegrityError if an email change collides with another user.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if not fields:
            return self.get_by_id(user_id) is not None
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_email(self, email: str, include_password: bool = False) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(self._select(include_password).where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int, include_password: bool = False) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(self._select(include_password).where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def email_exists(self, email: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.id).where(_users.c.email == email)).fetchone()
        return row is not None

    def list_users(self) -> list[User]:
        """Return all users, newest first. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(*_PUBLIC_COLUMNS).order_by(_users.c.created_at.desc(), _users.c.id.desc())
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    # hashed_password is absent from the default projection.
    mapping = row._mapping
    avatar = None
    if mapping["avatar_public_id"] or mapping["avatar_url"]:
        avatar = Avatar(public_id=mapping["avatar_public_id"] or "", url=mapping["avatar_url"] or "")
    return User(
        id=mapping["id"],
        name=mapping["name"],
        email=mapping["email"],
        role=mapping["role"],
        hashed_password=mapping.get("hashed_password"),
        is_verified=bool(mapping["is_verified"]),
        avatar=avatar,
        created_at=mapping["created_at"],
    )
