"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper. UserStore is the repository;
_row_to_identity is the mapper. Route and service code never touches SQL.

Uniqueness: username carries a UNIQUE constraint and the database is the
only arbiter. insert() and update() do not pre-check with a SELECT (that
races); they attempt the write and translate IntegrityError into
Err(DUPLICATE_USERNAME). No other exception is translated.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/. The database URL is passed in by
the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import Identity, Role
from auth.results import Err, Ok, StoreErrorKind, StoreResult

logger = logging.getLogger("roster.store")

# Columns update() accepts. Anything else is a programming error.
_UPDATABLE_FIELDS = frozenset({"username", "password_hash", "role"})

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(32), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(16), nullable=False, server_default=Role.USER.value),
    Column("created_at", String(32), nullable=False),
)


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


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for Identity records.

    Usage:
        store = UserStore("sqlite:///roster.db")
        match store.insert("alice", hasher.hash("password123"), Role.USER):
            case Ok(value=identity): ...
            case Err(kind=StoreErrorKind.DUPLICATE_USERNAME): ...
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_username(self, username: str) -> Identity | None:
        """Look up an identity by exact username (case-sensitive)."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def find_by_id(self, user_id: int) -> Identity | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def list_all(self) -> list[Identity]:
        """Return every identity, oldest first. id breaks created_at ties."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.created_at.asc(), _users.c.id.asc())).fetchall()
        return [_row_to_identity(r) for r in rows]

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return (result or 0) > 0

    def ping(self) -> bool:
        """Run a trivial query to verify the database is reachable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, username: str, password_hash: str, role: Role = Role.USER) -> StoreResult:
        """Insert a new identity.

        Returns Ok(identity) with the assigned id and created_at, or
        Err(DUPLICATE_USERNAME) when the username is taken. The failed insert
        is rolled back; no row is created.
        """
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _users.insert().values(
                        username=username,
                        password_hash=password_hash,
                        role=Role(role).value,
                        created_at=_now_iso(),
                    )
                )
                user_id = result.inserted_primary_key[0]
        except IntegrityError:
            logger.info("Insert rejected: username already exists")
            return Err(StoreErrorKind.DUPLICATE_USERNAME)

        identity = self.find_by_id(user_id)
        if identity is None:
            return Err(StoreErrorKind.NOT_FOUND)
        return Ok(identity)

    def update(self, user_id: int, **fields) -> StoreResult:
        """Update mutable fields (username, password_hash, role) on an identity.

        Returns Ok(updated identity), Err(NOT_FOUND) if no row has user_id,
        or Err(DUPLICATE_USERNAME) on a rename collision.

        Raises ValueError for unknown field names -- those come from code,
        never from request bodies.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown identity fields: {sorted(unknown)!r}")
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value

        if fields:
            try:
                with self.engine.begin() as conn:
                    result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            except IntegrityError:
                logger.info("Update of user_id=%s rejected: username already exists", user_id)
                return Err(StoreErrorKind.DUPLICATE_USERNAME)
            if result.rowcount == 0:
                return Err(StoreErrorKind.NOT_FOUND)

        identity = self.find_by_id(user_id)
        if identity is None:
            return Err(StoreErrorKind.NOT_FOUND)
        return Ok(identity)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        role=Role(row.role),
        created_at=row.created_at,
    )
