"""SQLAlchemy adapter for scoped opaque token persistence."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import cast

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from account_sessions.application.ports.account_repository_port import AccountRecord
from account_sessions.application.ports.token_repository_port import (
    IssuedToken,
    TokenConflictError,
    TokenRecord,
    TokenRepositoryPort,
)
from account_sessions.domain.auth.token_scope import TokenScope
from account_sessions.infrastructure.db.account_repository import to_account_record
from account_sessions.infrastructure.db.metadata import tokens, users
from account_sessions.infrastructure.db.statements import (
    DEFAULT_STATEMENT_TIMEOUT_SECONDS,
    as_utc,
    execute_bounded,
)

NowCallable = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class SqlAlchemyTokenRepository(TokenRepositoryPort):
    """Token repository bound to one SQLAlchemy async session."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        timeout_seconds: float = DEFAULT_STATEMENT_TIMEOUT_SECONDS,
        now: NowCallable = _utc_now,
    ) -> None:
        self._session = session
        self._timeout_seconds = timeout_seconds
        self._now = now

    async def create_token(self, token: IssuedToken) -> None:
        """Persist a token hash row inside a savepoint."""

        statement = sa.insert(tokens).values(
            hash=token.token_hash,
            user_id=token.account_id,
            scope=token.scope.value,
            expiry=token.expires_at,
        )

        try:
            async with self._session.begin_nested():
                await execute_bounded(
                    self._session,
                    statement,
                    timeout_seconds=self._timeout_seconds,
                )
        except IntegrityError as error:
            raise TokenConflictError(
                f"token already exists for account_id={token.account_id} scope={token.scope}"
            ) from error

    async def get(self, *, account_id: int, scope: TokenScope) -> TokenRecord | None:
        """Return the stored token regardless of expiry."""

        statement = sa.select(*tokens.c).where(
            tokens.c.user_id == account_id,
            tokens.c.scope == scope.value,
        ).limit(1)

        result = await execute_bounded(
            self._session,
            statement,
            timeout_seconds=self._timeout_seconds,
        )
        row = result.mappings().first()
        if row is None:
            return None
        return _to_token_record(row)

    async def get_account_by_token(
        self,
        *,
        scope: TokenScope,
        token_hash: bytes,
    ) -> AccountRecord | None:
        """Resolve the owning account of one unexpired token of the given scope."""

        statement = (
            sa.select(*users.c)
            .select_from(users.join(tokens, users.c.id == tokens.c.user_id))
            .where(
                tokens.c.hash == token_hash,
                tokens.c.scope == scope.value,
                tokens.c.expiry > self._now(),
            )
            .limit(1)
        )

        result = await execute_bounded(
            self._session,
            statement,
            timeout_seconds=self._timeout_seconds,
        )
        row = result.mappings().first()
        if row is None:
            return None
        return to_account_record(row)

    async def delete(self, *, account_id: int, scope: TokenScope) -> int:
        statement = sa.delete(tokens).where(
            tokens.c.user_id == account_id,
            tokens.c.scope == scope.value,
        )

        result = await execute_bounded(
            self._session,
            statement,
            timeout_seconds=self._timeout_seconds,
        )
        return int(cast(sa.CursorResult[object], result).rowcount or 0)


def _to_token_record(row: sa.RowMapping) -> TokenRecord:
    return TokenRecord(
        token_hash=bytes(row["hash"]),
        account_id=int(row["user_id"]),
        expires_at=as_utc(cast(datetime, row["expiry"])),
        scope=TokenScope(cast(str, row["scope"])),
    )
