"""Port for account capability grants."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from account_sessions.domain.auth.permissions import Permission, PermissionSet


class PermissionRepositoryPort(Protocol):
    """Permission grant contract bound to one unit of work."""

    async def add(self, *, account_id: int, permissions: Iterable[Permission]) -> None:
        """Grant capabilities additively; already-granted ones are skipped."""

    async def get(self, *, account_id: int) -> PermissionSet:
        """Return every capability granted to one account."""
