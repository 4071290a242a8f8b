"""Port for transactional access to account, token and permission storage."""

from __future__ import annotations

from collections.abc import Callable
from types import TracebackType
from typing import Protocol

from account_sessions.application.ports.account_repository_port import AccountRepositoryPort
from account_sessions.application.ports.permission_repository_port import (
    PermissionRepositoryPort,
)
from account_sessions.application.ports.token_repository_port import TokenRepositoryPort


class UnitOfWorkPort(Protocol):
    """One storage transaction; leaving the block without `commit()` rolls back."""

    accounts: AccountRepositoryPort
    tokens: TokenRepositoryPort
    permissions: PermissionRepositoryPort

    async def __aenter__(self) -> UnitOfWorkPort: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None: ...

    async def commit(self) -> None:
        """Commit every statement issued inside the block."""


UnitOfWorkFactory = Callable[[], UnitOfWorkPort]
