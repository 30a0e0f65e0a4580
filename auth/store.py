"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as tasks/store.py).
UserStore is the repository; _row_to_user is the mapper. Route and dependency
code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Role names are validated against core.policy.Role before they are written,
  so the user_roles table only ever holds members of the closed role set.

  UNIQUE(oauth_provider, oauth_subject) is enforced in code rather than SQL
  because SQLite treats two NULL values as distinct in UNIQUE constraints.

Tables:
  users          -- one row per identity
  user_roles     -- (user_id, role) pairs; a user may hold several roles
  revoked_tokens -- jti of JWTs ended by logout

Layer rule: no imports from api/ or tasks/.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
    text,
)
from sqlalchemy.engine import Engine

from auth.models import User
from core.config import get_settings
from core.policy import Role

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
    Column("hashed_password", Text),  # NULL for OAuth-only users
    Column("oauth_provider", String(30)),
    Column("oauth_subject", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_user_roles = Table(
    "user_roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("role", String(30), nullable=False),
    UniqueConstraint("user_id", "role", name="uq_user_role"),
)

_revoked_tokens = Table(
    "revoked_tokens",
    _metadata,
    Column("jti", String(64), primary_key=True),
    Column("user_id", Integer, nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("revoked_at", String(32), nullable=False),
)

# Columns a caller may change through update_user(). Roles go through set_roles().
_MUTABLE_FIELDS = {"name", "email", "hashed_password", "oauth_provider", "oauth_subject"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _validate_roles(roles: Iterable[str]) -> list[str]:
    """Return de-duplicated role names in input order. Raises ValueError on an unknown role."""
    result: list[str] = []
    for r in roles:
        name = Role(r).value
        if name not in result:
            result.append(name)
    return result


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities, their roles, and revoked tokens.

    Usage:
        store = UserStore()
        store.create_user(User(name="Admin", email="admin@example.com",
                               roles=["admin"], hashed_password=hash_password("secret")))
        user = store.get_by_email("admin@example.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        """Return True if at least one user record exists."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User) -> int:
        """Insert a new user with its roles and return the assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Raises ValueError if any role name is not a known Role.
        """
        roles = _validate_roles(user.roles)
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    name=user.name,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    oauth_provider=user.oauth_provider,
                    oauth_subject=user.oauth_subject,
                    created_at=now,
                    updated_at=now,
                )
            )
            user_id = result.inserted_primary_key[0]
            if roles:
                conn.execute(_user_roles.insert(), [{"user_id": user_id, "role": r} for r in roles])
            conn.commit()
            return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(func.lower(_users.c.email) == email.lower())).fetchone()
            if row is None:
                return None
            return _row_to_user(row, self._roles_for(conn, row.id))

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
            if row is None:
                return None
            return _row_to_user(row, self._roles_for(conn, row.id))

    def get_by_oauth(self, provider: str, subject: str) -> User | None:
        """Look up a user by (oauth_provider, oauth_subject). Returns None if not linked."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where((_users.c.oauth_provider == provider) & (_users.c.oauth_subject == subject))
            ).fetchone()
            if row is None:
                return None
            return _row_to_user(row, self._roles_for(conn, row.id))

    def link_oauth(self, user_id: int, provider: str, subject: str) -> None:
        """Associate an OAuth identity with an existing user record."""
        self.update_user(user_id, oauth_provider=provider, oauth_subject=subject)

    def list_users(self) -> list[User]:
        """Return all users ordered by id, roles included. Two queries total."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
            role_rows = conn.execute(_user_roles.select().order_by(_user_roles.c.id)).fetchall()
        roles_by_user: dict[int, list[str]] = {}
        for r in role_rows:
            roles_by_user.setdefault(r.user_id, []).append(r.role)
        return [_row_to_user(row, roles_by_user.get(row.id, [])) for row in rows]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields on an existing user and stamp updated_at.

        Accepted fields: name, email, hashed_password, oauth_provider,
        oauth_subject. Unknown keys raise ValueError -- fail fast rather than
        silently ignoring a typo.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {sorted(unknown)!r}")
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def set_roles(self, user_id: int, roles: Iterable[str]) -> None:
        """Replace the user's roles with exactly `roles` (sync semantics).

        Raises ValueError if any role name is not a known Role; nothing is
        written in that case.
        """
        validated = _validate_roles(roles)
        with self.engine.connect() as conn:
            conn.execute(_user_roles.delete().where(_user_roles.c.user_id == user_id))
            if validated:
                conn.execute(_user_roles.insert(), [{"user_id": user_id, "role": r} for r in validated])
            conn.execute(_users.update().where(_users.c.id == user_id).values(updated_at=_now_iso()))
            conn.commit()

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record and its role rows.

        Returns True if deleted, False if not found. Tasks owned by the user
        are the caller's concern (see tasks.store.TaskStore.delete_tasks_for_owner).
        """
        with self.engine.connect() as conn:
            conn.execute(_user_roles.delete().where(_user_roles.c.user_id == user_id))
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def _roles_for(self, conn, user_id: int) -> list[str]:
        rows = conn.execute(
            select(_user_roles.c.role).where(_user_roles.c.user_id == user_id).order_by(_user_roles.c.id)
        ).fetchall()
        return [r.role for r in rows]

    # ------------------------------------------------------------------
    # Token revocation
    # ------------------------------------------------------------------

    def revoke_token(self, jti: str, user_id: int, expires_at: str) -> None:
        """Record a logged-out token. Revoking the same jti twice is a no-op."""
        if self.is_token_revoked(jti):
            return
        with self.engine.connect() as conn:
            conn.execute(
                _revoked_tokens.insert().values(
                    jti=jti,
                    user_id=user_id,
                    expires_at=expires_at,
                    revoked_at=_now_iso(),
                )
            )
            conn.commit()

    def is_token_revoked(self, jti: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(_revoked_tokens.select().where(_revoked_tokens.c.jti == jti)).fetchone()
        return row is not None

    def purge_expired_tokens(self) -> int:
        """Delete revocation rows whose token has expired anyway. Returns rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_revoked_tokens.delete().where(_revoked_tokens.c.expires_at < _now_iso()))
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row, roles: list[str]) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        roles=list(roles),
        hashed_password=row.hashed_password,
        oauth_provider=row.oauth_provider,
        oauth_subject=row.oauth_subject,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
