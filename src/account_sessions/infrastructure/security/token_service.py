"""Opaque token minting and lookup hashing."""

from __future__ import annotations

import base64
import hashlib
import re
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Final

from account_sessions.application.errors import EntropyError
from account_sessions.application.ports.token_codec_port import TokenCodecPort
from account_sessions.application.ports.token_repository_port import IssuedToken
from account_sessions.domain.auth.token_scope import TokenScope
from account_sessions.domain.validator import Validator

TOKEN_RANDOM_BYTES: Final = 16
TOKEN_PLAINTEXT_LENGTH: Final = 26
TOKEN_HASH_BYTES: Final = 32
_TOKEN_ALPHABET_RX: Final = re.compile(r"[A-Z2-7]+")

RandomBytes = Callable[[int], bytes]
NowCallable = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


class OpaqueTokenService(TokenCodecPort):
    """Mint base32 bearer tokens and hash them with SHA-256 for storage."""

    def __init__(
        self,
        *,
        random_bytes: RandomBytes = secrets.token_bytes,
        now: NowCallable = _utc_now,
    ) -> None:
        self._random_bytes = random_bytes
        self._now = now

    def generate(self, *, account_id: int, ttl: timedelta, scope: TokenScope) -> IssuedToken:
        """Mint one token; the plaintext is never persisted."""

        try:
            raw = self._random_bytes(TOKEN_RANDOM_BYTES)
        except (OSError, NotImplementedError) as error:
            raise EntropyError(f"secure random source unavailable: {error}") from error
        if len(raw) != TOKEN_RANDOM_BYTES:
            raise EntropyError("secure random source returned too few bytes")

        plaintext = base64.b32encode(raw).decode("ascii").rstrip("=")
        return IssuedToken(
            plaintext=plaintext,
            token_hash=self.hash_token(plaintext),
            account_id=account_id,
            expires_at=self._now() + ttl,
            scope=scope,
        )

    def hash_token(self, plaintext: str) -> bytes:
        return hashlib.sha256(plaintext.encode("utf-8")).digest()

    def validate_plaintext(self, plaintext: str) -> Validator:
        validator = Validator()
        validator.check(plaintext != "", "token", "must be provided")
        validator.check(
            len(plaintext) == TOKEN_PLAINTEXT_LENGTH,
            "token",
            "must be 26 bytes long",
        )
        validator.check(
            _TOKEN_ALPHABET_RX.fullmatch(plaintext) is not None,
            "token",
            "must contain only base32 characters",
        )
        return validator
