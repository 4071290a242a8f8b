"""Account input validation rules and per-workflow validation profiles.

Every profile builds a fresh `Validator`, so results never leak between
workflows. Fields set to `None` are absent; an empty string is a present
value that fails the "must be provided" rule.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

from account_sessions.domain.validator import Validator

EMAIL_RX: Final = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")
USERNAME_RX: Final = re.compile(r"[a-zA-Z0-9]+")
UPPERCASE_RX: Final = re.compile(r"[A-Z]")
LOWERCASE_RX: Final = re.compile(r"[a-z]")
NUMBER_RX: Final = re.compile(r"[0-9]")
SYMBOL_RX: Final = re.compile(r"[#?!@$%^&*_\\\-]")

USERNAME_MIN_LENGTH: Final = 3
USERNAME_MAX_LENGTH: Final = 25
# bcrypt only reads the first 72 bytes of its input.
PASSWORD_MIN_BYTES: Final = 8
PASSWORD_MAX_BYTES: Final = 72

PASSWORD_POLICY_MESSAGE: Final = (
    "must be 8-72 characters long and contain at least one uppercase letter, "
    "one lowercase letter, one number, and one symbol"
)


@dataclass(frozen=True)
class AccountInput:
    """Request-scoped account fields awaiting validation."""

    username: str | None = None
    email: str | None = None
    password: str | None = None

    def validate_registration(self) -> Validator:
        validator = Validator()
        _validate_username(validator, self.username)
        _validate_email(validator, self.email)
        _validate_password(validator, self.password, required=True)
        return validator

    def validate_login(self) -> Validator:
        validator = Validator()
        _validate_username(validator, self.username)
        _validate_password(validator, self.password, required=True)
        return validator

    def validate_email_only(self) -> Validator:
        validator = Validator()
        _validate_email(validator, self.email)
        return validator

    def validate_password_only(self) -> Validator:
        validator = Validator()
        _validate_password(validator, self.password, required=True)
        return validator

    def validate_update(self) -> Validator:
        """Validate only the fields supplied for an account update."""

        validator = Validator()
        if self.email is None and self.password is None:
            validator.add_error("account", "email or password must be provided")
            return validator
        if self.email is not None:
            _validate_email(validator, self.email)
        if self.password is not None:
            _validate_password(validator, self.password, required=False)
        return validator


def is_valid_password(password: str) -> bool:
    """Return whether one plaintext password satisfies the password policy."""

    size = len(password.encode("utf-8"))
    return (
        PASSWORD_MIN_BYTES <= size <= PASSWORD_MAX_BYTES
        and UPPERCASE_RX.search(password) is not None
        and LOWERCASE_RX.search(password) is not None
        and NUMBER_RX.search(password) is not None
        and SYMBOL_RX.search(password) is not None
    )


def _validate_username(validator: Validator, username: str | None) -> None:
    value = username or ""
    validator.check(value != "", "username", "must be provided")
    validator.check(
        validator.check_string_length(value, USERNAME_MIN_LENGTH, USERNAME_MAX_LENGTH),
        "username",
        "must be 3-25 characters long",
    )
    validator.check(
        USERNAME_RX.fullmatch(value) is not None,
        "username",
        "must contain only letters and numbers",
    )


def _validate_email(validator: Validator, email: str | None) -> None:
    value = email or ""
    validator.check(value != "", "email", "must be provided")
    validator.check(EMAIL_RX.fullmatch(value) is not None, "email", "must be a valid email address")


def _validate_password(validator: Validator, password: str | None, *, required: bool) -> None:
    if password is None:
        if required:
            validator.add_error("password", "must be provided")
        return
    validator.check(is_valid_password(password), "password", PASSWORD_POLICY_MESSAGE)
