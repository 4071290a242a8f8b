"""Port for opaque token minting and hashing."""

from __future__ import annotations

from datetime import timedelta
from typing import Protocol

from account_sessions.application.ports.token_repository_port import IssuedToken
from account_sessions.domain.auth.token_scope import TokenScope
from account_sessions.domain.validator import Validator


class TokenCodecPort(Protocol):
    """Token generation and deterministic lookup hashing contract."""

    def generate(self, *, account_id: int, ttl: timedelta, scope: TokenScope) -> IssuedToken:
        """Mint one random token for an account and scope."""

    def hash_token(self, plaintext: str) -> bytes:
        """Return the lookup hash for one plaintext token."""

    def validate_plaintext(self, plaintext: str) -> Validator:
        """Validate token shape before any storage lookup."""
