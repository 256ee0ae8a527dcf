"""SQLAlchemy ORM models — single source of truth for the database schema.

Declarative mapping in SQLAlchemy 2.0 style (Mapped[] + mapped_column).
The same models run on PostgreSQL in production and on SQLite in tests, so
the few PostgreSQL-only types carry a SQLite variant:

- BIGINT primary keys become INTEGER on SQLite (needed for rowid autoincrement)
- TEXT[] genres become JSON on SQLite
- email uniqueness is a unique index on lower(email) instead of CITEXT
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

BigId = BigInteger().with_variant(Integer(), "sqlite")
TextArray = ARRAY(Text).with_variant(JSON(), "sqlite")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ══════════════════════════════════════════════════════════════
# Catalog
# ══════════════════════════════════════════════════════════════


class Movie(Base):
    """A catalog entry.

    version starts at 1 and is bumped by exactly one on every successful
    update. It is the only concurrency witness: writers condition their
    UPDATE on the version they read.
    """

    __tablename__ = "movies"
    # year and genre-count checks and the GIN indexes are PostgreSQL-only
    # and live in the migration.
    __table_args__ = (
        CheckConstraint("runtime >= 0", name="movies_runtime_check"),
    )

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    runtime: Mapped[int] = mapped_column(Integer, nullable=False)
    genres: Mapped[list[str]] = mapped_column(TextArray, nullable=False)
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default="1"
    )


# ══════════════════════════════════════════════════════════════
# Accounts
# ══════════════════════════════════════════════════════════════


class User(Base):
    """A registered account. password_hash is never serialized."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    password_hash: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    activated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    version: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default="1"
    )

    is_anonymous = False


# Case-insensitive uniqueness (CITEXT semantics, portable to SQLite).
Index("users_email_lower_idx", func.lower(User.email), unique=True)


class Token(Base):
    """A scoped bearer token. Only the SHA-256 of the plaintext is stored.

    Rows are inserted and deleted, never updated.
    """

    __tablename__ = "tokens"
    __table_args__ = (
        Index("tokens_user_scope_idx", "user_id", "scope"),
    )

    hash: Mapped[bytes] = mapped_column(LargeBinary, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigId, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    expiry: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    scope: Mapped[str] = mapped_column(Text, nullable=False)


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(BigId, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)


users_permissions = Table(
    "users_permissions",
    Base.metadata,
    Column(
        "user_id",
        BigId,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "permission_id",
        BigId,
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class AnonymousUser:
    """Stand-in for a request that presented no credentials.

    Distinguishable from any real User by is_anonymous, and never activated,
    so the activation gate rejects it.
    """

    id: Optional[int] = None
    name = ""
    email = ""
    activated = False
    is_anonymous = True

    def __repr__(self) -> str:
        return "AnonymousUser()"


ANONYMOUS_USER = AnonymousUser()
