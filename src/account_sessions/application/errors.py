"""Error taxonomy surfaced by account lifecycle workflows."""

from __future__ import annotations

from typing import Final

INVALID_CREDENTIALS_MESSAGE: Final = "invalid authentication credentials"
INVALID_OR_EXPIRED_TOKEN_MESSAGE: Final = "invalid or expired token"


class FieldValidationError(ValueError):
    """Raised with field-scoped, user-correctable error messages."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(", ".join(f"{field}: {message}" for field, message in errors.items()))
        self.errors = dict(errors)


class ConflictError(FieldValidationError):
    """Raised when a username or email is already taken."""


class NotFoundError(LookupError):
    """Raised when a credential, token or account cannot be resolved.

    The message never reveals which part of the credential was wrong.
    """

    def __init__(self) -> None:
        super().__init__(INVALID_CREDENTIALS_MESSAGE)


class StorageError(RuntimeError):
    """Raised on transient storage failures, including statement timeouts."""


class EntropyError(RuntimeError):
    """Raised when the secure random source is unavailable."""


class HashingError(RuntimeError):
    """Raised when a password cannot be hashed or a stored hash is corrupt."""


class AuthenticationRequiredError(PermissionError):
    """Raised when an anonymous caller reaches an authenticated workflow."""


class PermissionDeniedError(PermissionError):
    """Raised when an authenticated caller lacks access to one action."""
