"""SQLAlchemy unit of work spanning account, token and permission writes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from types import TracebackType

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from account_sessions.application.errors import StorageError
from account_sessions.application.ports.unit_of_work_port import (
    UnitOfWorkFactory,
    UnitOfWorkPort,
)
from account_sessions.infrastructure.db.account_repository import SqlAlchemyAccountRepository
from account_sessions.infrastructure.db.permission_repository import (
    SqlAlchemyPermissionRepository,
)
from account_sessions.infrastructure.db.statements import DEFAULT_STATEMENT_TIMEOUT_SECONDS
from account_sessions.infrastructure.db.token_repository import SqlAlchemyTokenRepository

NowCallable = Callable[[], datetime]
logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class SqlAlchemyUnitOfWork(UnitOfWorkPort):
    """Run repository calls in one transaction; exit without commit rolls back."""

    accounts: SqlAlchemyAccountRepository
    tokens: SqlAlchemyTokenRepository
    permissions: SqlAlchemyPermissionRepository

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        statement_timeout_seconds: float = DEFAULT_STATEMENT_TIMEOUT_SECONDS,
        now: NowCallable = _utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._timeout_seconds = statement_timeout_seconds
        self._now = now
        self._session: AsyncSession | None = None
        self._committed = False

    async def __aenter__(self) -> SqlAlchemyUnitOfWork:
        if self._session is not None:
            raise RuntimeError("unit of work is already in use")

        session = self._session_factory()
        self._session = session
        self._committed = False
        self.accounts = SqlAlchemyAccountRepository(
            session,
            timeout_seconds=self._timeout_seconds,
        )
        self.tokens = SqlAlchemyTokenRepository(
            session,
            timeout_seconds=self._timeout_seconds,
            now=self._now,
        )
        self.permissions = SqlAlchemyPermissionRepository(
            session,
            timeout_seconds=self._timeout_seconds,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        session = self._require_session()
        try:
            if not self._committed:
                if exc_type is not None:
                    logger.info("transaction_rolled_back reason=%s", exc_type.__name__)
                await session.rollback()
        finally:
            self._session = None
            await session.close()

    async def commit(self) -> None:
        session = self._require_session()
        try:
            async with asyncio.timeout(self._timeout_seconds):
                await session.commit()
        except TimeoutError as error:
            raise StorageError(
                f"transaction commit timed out after {self._timeout_seconds}s"
            ) from error
        except SQLAlchemyError as error:
            raise StorageError(f"transaction commit failed: {error}") from error
        self._committed = True

    def _require_session(self) -> AsyncSession:
        if self._session is None:
            raise RuntimeError("unit of work is not active")
        return self._session


def build_unit_of_work_factory(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    statement_timeout_seconds: float = DEFAULT_STATEMENT_TIMEOUT_SECONDS,
    now: NowCallable = _utc_now,
) -> UnitOfWorkFactory:
    """Return a factory creating one fresh unit of work per workflow."""

    def _factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(
            session_factory,
            statement_timeout_seconds=statement_timeout_seconds,
            now=now,
        )

    return _factory
