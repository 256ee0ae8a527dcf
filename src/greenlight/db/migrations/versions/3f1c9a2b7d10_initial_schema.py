"""initial schema: movies, users, tokens, permissions

Movies carry a version column for optimistic concurrency and check
constraints on runtime, year and genre count. Users are unique on
lower(email). Tokens are keyed by the SHA-256 of their plaintext and
cascade with their user. The two catalog permissions are seeded.

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-18 09:12:41.204518
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ─── Movies ──────────────────────────────────────────
    op.create_table(
        "movies",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("runtime", sa.Integer(), nullable=False),
        sa.Column("genres", postgresql.ARRAY(sa.Text()), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("runtime >= 0", name="movies_runtime_check"),
        sa.CheckConstraint(
            "year BETWEEN 1888 AND date_part('year', now())",
            name="movies_year_check",
        ),
        sa.CheckConstraint(
            "array_length(genres, 1) BETWEEN 1 AND 5",
            name="movies_genres_length_check",
        ),
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS movies_title_idx "
        "ON movies USING GIN (to_tsvector('simple', title))"
    )
    op.execute(
        "CREATE INDEX IF NOT EXISTS movies_genres_idx ON movies USING GIN (genres)"
    )

    # ─── Users ───────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.LargeBinary(), nullable=False),
        sa.Column("activated", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )
    op.execute("CREATE UNIQUE INDEX users_email_lower_idx ON users (lower(email))")

    # ─── Tokens ──────────────────────────────────────────
    op.create_table(
        "tokens",
        sa.Column("hash", sa.LargeBinary(), primary_key=True),
        sa.Column(
            "user_id",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expiry", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scope", sa.Text(), nullable=False),
    )
    op.create_index("tokens_user_scope_idx", "tokens", ["user_id", "scope"])

    # ─── Permissions ─────────────────────────────────────
    permissions = op.create_table(
        "permissions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(100), nullable=False, unique=True),
    )
    op.create_table(
        "users_permissions",
        sa.Column(
            "user_id",
            sa.BigInteger(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "permission_id",
            sa.BigInteger(),
            sa.ForeignKey("permissions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.bulk_insert(
        permissions,
        [{"code": "movies:read"}, {"code": "movies:write"}],
    )


def downgrade() -> None:
    op.drop_table("users_permissions")
    op.drop_table("permissions")
    op.drop_index("tokens_user_scope_idx", table_name="tokens")
    op.drop_table("tokens")
    op.execute("DROP INDEX IF EXISTS users_email_lower_idx")
    op.drop_table("users")
    op.execute("DROP INDEX IF EXISTS movies_genres_idx")
    op.execute("DROP INDEX IF EXISTS movies_title_idx")
    op.drop_table("movies")
