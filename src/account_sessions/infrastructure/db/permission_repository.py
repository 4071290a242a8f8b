"""SQLAlchemy adapter for account capability grants."""

from __future__ import annotations

from collections.abc import Iterable
from typing import cast

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from account_sessions.application.errors import StorageError
from account_sessions.application.ports.permission_repository_port import (
    PermissionRepositoryPort,
)
from account_sessions.domain.auth.permissions import Permission, PermissionSet
from account_sessions.infrastructure.db.metadata import permissions as permissions_table
from account_sessions.infrastructure.db.metadata import user_permissions
from account_sessions.infrastructure.db.statements import (
    DEFAULT_STATEMENT_TIMEOUT_SECONDS,
    execute_bounded,
)


class SqlAlchemyPermissionRepository(PermissionRepositoryPort):
    """Permission repository bound to one SQLAlchemy async session."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        timeout_seconds: float = DEFAULT_STATEMENT_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session
        self._timeout_seconds = timeout_seconds

    async def add(self, *, account_id: int, permissions: Iterable[Permission]) -> None:
        """Insert only the (account, permission) pairs not granted yet."""

        requested = {permission.value for permission in permissions}
        if not requested:
            return

        already_granted = sa.select(user_permissions.c.permission_id).where(
            user_permissions.c.user_id == account_id
        )
        source = sa.select(
            sa.literal(account_id, type_=sa.BigInteger()),
            permissions_table.c.id,
        ).where(
            permissions_table.c.name.in_(sorted(requested)),
            permissions_table.c.id.not_in(already_granted),
        )
        statement = sa.insert(user_permissions).from_select(
            ["user_id", "permission_id"],
            source,
        )

        try:
            async with self._session.begin_nested():
                await execute_bounded(
                    self._session,
                    statement,
                    timeout_seconds=self._timeout_seconds,
                )
        except IntegrityError as error:
            # A concurrent grant of the same pair is success; anything else is not.
            granted = await self.get(account_id=account_id)
            if not all(granted.includes(Permission(name)) for name in requested):
                raise StorageError(f"permission grant failed: {error.orig}") from error

    async def get(self, *, account_id: int) -> PermissionSet:
        statement = (
            sa.select(permissions_table.c.name)
            .select_from(
                permissions_table.join(
                    user_permissions,
                    permissions_table.c.id == user_permissions.c.permission_id,
                )
            )
            .where(user_permissions.c.user_id == account_id)
        )

        result = await execute_bounded(
            self._session,
            statement,
            timeout_seconds=self._timeout_seconds,
        )
        return PermissionSet(Permission(cast(str, name)) for name in result.scalars().all())
