"""Port for scoped opaque token persistence."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from account_sessions.application.ports.account_repository_port import AccountRecord
from account_sessions.domain.auth.token_scope import TokenScope


class TokenConflictError(Exception):
    """Raised when a token already exists for the same (account, scope) pair."""


@dataclass(frozen=True)
class IssuedToken:
    """Freshly minted token; the plaintext is only ever returned to the caller."""

    plaintext: str = field(repr=False)
    token_hash: bytes = field(repr=False)
    account_id: int
    expires_at: datetime
    scope: TokenScope


@dataclass(frozen=True)
class TokenRecord:
    """Persisted token row; no plaintext is stored."""

    token_hash: bytes = field(repr=False)
    account_id: int
    expires_at: datetime
    scope: TokenScope


class TokenRepositoryPort(Protocol):
    """Scoped token contract bound to one unit of work."""

    async def create_token(self, token: IssuedToken) -> None:
        """Persist one token hash or raise `TokenConflictError`."""

    async def get(self, *, account_id: int, scope: TokenScope) -> TokenRecord | None:
        """Return the stored token for (account, scope) regardless of expiry."""

    async def get_account_by_token(
        self,
        *,
        scope: TokenScope,
        token_hash: bytes,
    ) -> AccountRecord | None:
        """Return the owning account when hash and scope match an unexpired token."""

    async def delete(self, *, account_id: int, scope: TokenScope) -> int:
        """Delete the token for (account, scope); absent rows are not an error."""
