"""SQLAlchemy adapter for account persistence."""

from __future__ import annotations

from datetime import datetime
from typing import cast

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from account_sessions.application.errors import StorageError
from account_sessions.application.ports.account_repository_port import (
    AccountCreateInput,
    AccountRecord,
    AccountRepositoryPort,
    AccountUniqueField,
    AccountUpdateInput,
    DuplicateAccountFieldError,
)
from account_sessions.infrastructure.db.metadata import users
from account_sessions.infrastructure.db.statements import (
    DEFAULT_STATEMENT_TIMEOUT_SECONDS,
    as_utc,
    execute_bounded,
)

# PostgreSQL reports the constraint name, SQLite the table-qualified column.
_UNIQUE_FIELD_MARKERS: tuple[tuple[AccountUniqueField, tuple[str, ...]], ...] = (
    ("username", ("uq_users_username", "users.username")),
    ("email", ("uq_users_email", "users.email")),
)


class SqlAlchemyAccountRepository(AccountRepositoryPort):
    """Account repository bound to one SQLAlchemy async session."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        timeout_seconds: float = DEFAULT_STATEMENT_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session
        self._timeout_seconds = timeout_seconds

    async def insert(self, payload: AccountCreateInput) -> AccountRecord:
        """Insert one unactivated account and return the persisted row."""

        statement = sa.insert(users).values(
            username=payload.username,
            email=payload.email,
            password_hash=payload.password_hash,
        ).returning(*users.c)

        try:
            result = await execute_bounded(
                self._session,
                statement,
                timeout_seconds=self._timeout_seconds,
            )
        except IntegrityError as error:
            raise _duplicate_field_error(error) from error

        return to_account_record(result.mappings().one())

    async def get_by_id(self, *, account_id: int) -> AccountRecord | None:
        return await self._fetch_one(users.c.id == account_id)

    async def get_by_username(self, *, username: str) -> AccountRecord | None:
        return await self._fetch_one(users.c.username == username)

    async def get_by_email(self, *, email: str) -> AccountRecord | None:
        return await self._fetch_one(users.c.email == email)

    async def update(self, payload: AccountUpdateInput) -> AccountRecord | None:
        """Update mutable columns when the caller's version is still current."""

        statement = (
            sa.update(users)
            .where(
                users.c.id == payload.account_id,
                users.c.version == payload.expected_version,
            )
            .values(
                email=payload.email,
                password_hash=payload.password_hash,
                activated=payload.activated,
                version=users.c.version + 1,
            )
            .returning(*users.c)
        )

        try:
            result = await execute_bounded(
                self._session,
                statement,
                timeout_seconds=self._timeout_seconds,
            )
        except IntegrityError as error:
            raise _duplicate_field_error(error) from error

        row = result.mappings().first()
        if row is None:
            return None
        return to_account_record(row)

    async def _fetch_one(self, condition: sa.ColumnElement[bool]) -> AccountRecord | None:
        statement = sa.select(*users.c).where(condition).limit(1)
        result = await execute_bounded(
            self._session,
            statement,
            timeout_seconds=self._timeout_seconds,
        )
        row = result.mappings().first()
        if row is None:
            return None
        return to_account_record(row)


def to_account_record(row: sa.RowMapping) -> AccountRecord:
    """Map one `users` row into the account persistence model."""

    return AccountRecord(
        account_id=int(row["id"]),
        username=cast(str, row["username"]),
        email=cast(str, row["email"]),
        password_hash=cast(str, row["password_hash"]),
        activated=bool(row["activated"]),
        created_at=as_utc(cast(datetime, row["created_at"])),
        version=int(row["version"]),
    )


def _duplicate_field_error(error: IntegrityError) -> Exception:
    """Identify the violated unique column from the driver error message.

    Only the first line is inspected: PostgreSQL appends a `DETAIL` line
    echoing the conflicting value, which may itself contain a column name.
    """

    message = str(error.orig)
    headline = message.splitlines()[0] if message else ""
    for field, markers in _UNIQUE_FIELD_MARKERS:
        if any(marker in headline for marker in markers):
            return DuplicateAccountFieldError(field)
    return StorageError(f"account write violated an integrity constraint: {message}")
