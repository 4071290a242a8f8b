"""SQLAlchemy metadata definitions for account, token and permission tables."""

from __future__ import annotations

import sqlalchemy as sa

metadata = sa.MetaData()
sqlite_bigint = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

users = sa.Table(
    "users",
    metadata,
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

permissions = sa.Table(
    "permissions",
    metadata,
    sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
    sa.Column("name", sa.Text(), nullable=False),
    sa.UniqueConstraint("name", name="uq_permissions_name"),
)

user_permissions = sa.Table(
    "user_permissions",
    metadata,
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

tokens = sa.Table(
    "tokens",
    metadata,
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

sa.Index("ix_tokens_hash_scope", tokens.c.hash, tokens.c.scope)
