"""Port for account persistence operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Protocol

from account_sessions.domain.auth.identity import AccountSnapshot

AccountUniqueField = Literal["username", "email"]


class DuplicateAccountFieldError(Exception):
    """Raised by adapters when an insert or update violates a unique column."""

    def __init__(self, field: AccountUniqueField) -> None:
        super().__init__(f"duplicate {field}")
        self.field: AccountUniqueField = field


@dataclass(frozen=True)
class AccountCreateInput:
    """Input payload for inserting one unactivated account."""

    username: str
    email: str
    password_hash: str


@dataclass(frozen=True)
class AccountUpdateInput:
    """Version-checked update of the mutable account columns."""

    account_id: int
    expected_version: int
    email: str
    password_hash: str
    activated: bool


@dataclass(frozen=True)
class AccountRecord:
    """Account persistence model."""

    account_id: int
    username: str
    email: str
    password_hash: str
    activated: bool
    created_at: datetime
    version: int

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(
            account_id=self.account_id,
            username=self.username,
            email=self.email,
            activated=self.activated,
            created_at=self.created_at,
            version=self.version,
        )


class AccountRepositoryPort(Protocol):
    """Account repository contract bound to one unit of work."""

    async def insert(self, payload: AccountCreateInput) -> AccountRecord:
        """Insert one account or raise `DuplicateAccountFieldError`."""

    async def get_by_id(self, *, account_id: int) -> AccountRecord | None:
        """Return account by id."""

    async def get_by_username(self, *, username: str) -> AccountRecord | None:
        """Return account by exact username."""

    async def get_by_email(self, *, email: str) -> AccountRecord | None:
        """Return account by normalized email."""

    async def update(self, payload: AccountUpdateInput) -> AccountRecord | None:
        """Apply a version-checked update; return None when the version is stale."""
