"""Token scopes and their fixed time-to-live values."""

from __future__ import annotations

from datetime import timedelta
from enum import StrEnum
from typing import Final


class TokenScope(StrEnum):
    """Persisted scope tags; at most one token per (account, scope)."""

    ACCESS = "token:access"
    REFRESH = "token:refresh"
    ACTIVATION = "token:activate"
    PASSWORD_RESET = "token:resetpwd"


TOKEN_TTLS: Final[dict[TokenScope, timedelta]] = {
    TokenScope.ACCESS: timedelta(hours=24),
    TokenScope.REFRESH: timedelta(days=7),
    TokenScope.ACTIVATION: timedelta(days=3),
    TokenScope.PASSWORD_RESET: timedelta(hours=1),
}


def ttl_for_scope(scope: TokenScope) -> timedelta:
    """Return the time-to-live applied when minting a token of one scope."""

    return TOKEN_TTLS[scope]
