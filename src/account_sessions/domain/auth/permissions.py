"""Named account capabilities and membership checks."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from enum import StrEnum


class Permission(StrEnum):
    """Supported capability names, seeded in the `permissions` table."""

    READ_USER = "user:read"
    WRITE_USER = "user:write"


class PermissionSet:
    """Already-fetched capability grants for one account."""

    def __init__(self, permissions: Iterable[Permission] = ()) -> None:
        self._permissions = frozenset(permissions)

    def includes(self, permission: Permission) -> bool:
        return permission in self._permissions

    def includes_all(self, permissions: Iterable[Permission]) -> bool:
        return all(self.includes(permission) for permission in permissions)

    def __iter__(self) -> Iterator[Permission]:
        return iter(sorted(self._permissions))

    def __len__(self) -> int:
        return len(self._permissions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PermissionSet):
            return NotImplemented
        return self._permissions == other._permissions

    def __repr__(self) -> str:
        names = ", ".join(permission.value for permission in self)
        return f"PermissionSet({{{names}}})"
