"""Caller identity carried through request handling."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AccountSnapshot:
    """Public view of an account resolved from a credential."""

    account_id: int
    username: str
    email: str
    activated: bool
    created_at: datetime
    version: int


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated account or the anonymous caller, tagged explicitly."""

    is_anonymous: bool
    account: AccountSnapshot | None = None

    @classmethod
    def anonymous(cls) -> CallerIdentity:
        return cls(is_anonymous=True, account=None)

    @classmethod
    def authenticated(cls, account: AccountSnapshot) -> CallerIdentity:
        return cls(is_anonymous=False, account=account)
