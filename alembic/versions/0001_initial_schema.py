"""Initial schema for users, permissions, grants and tokens."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sqlite_bigint, primary_key=True, autoincrement=True),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("activated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    permissions_table = op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.UniqueConstraint("name", name="uq_permissions_name"),
    )
    op.bulk_insert(
        permissions_table,
        [
            {"name": "user:read"},
            {"name": "user:write"},
        ],
    )

    op.create_table(
        "user_permissions",
        sa.Column(
            "user_id",
            sqlite_bigint,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        ),
        sa.Column(
            "permission_id",
            sa.Integer(),
            sa.ForeignKey("permissions.id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        ),
    )

    op.create_table(
        "tokens",
        sa.Column("hash", sa.LargeBinary(32), nullable=False),
        sa.Column(
            "user_id",
            sqlite_bigint,
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
            nullable=False,
        ),
        sa.Column("scope", sa.Text(), primary_key=True, nullable=False),
        sa.Column("expiry", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "scope IN ('token:access', 'token:refresh', 'token:activate', 'token:resetpwd')",
            name="ck_tokens_scope",
        ),
    )
    op.create_index("ix_tokens_hash_scope", "tokens", ["hash", "scope"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_tokens_hash_scope", table_name="tokens")
    op.drop_table("tokens")
    op.drop_table("user_permissions")
    op.drop_table("permissions")
    op.drop_table("users")
