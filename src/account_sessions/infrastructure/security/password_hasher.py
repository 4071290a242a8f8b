"""Bcrypt password hasher adapter."""

from __future__ import annotations

import bcrypt

from account_sessions.application.errors import HashingError
from account_sessions.application.ports.password_hasher_port import PasswordHasherPort

DEFAULT_BCRYPT_ROUNDS = 12


class BcryptPasswordHasher(PasswordHasherPort):
    """Password hashing adapter using bcrypt with a fixed cost factor."""

    def __init__(self, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        self._rounds = rounds

    def hash_password(self, password: str) -> str:
        encoded = password.encode("utf-8")
        try:
            hashed = bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self._rounds))
        except ValueError as error:
            raise HashingError(f"password hashing failed: {error}") from error
        return hashed.decode("utf-8")

    def verify_password(self, *, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError as error:
            raise HashingError("stored password hash is corrupt") from error
