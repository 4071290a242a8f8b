"""Field-scoped error accumulator shared by every validation profile."""

from __future__ import annotations


class Validator:
    """Collect one human-readable error per field; first error per field wins."""

    def __init__(self) -> None:
        self.errors: dict[str, str] = {}

    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, field: str, message: str) -> None:
        if field not in self.errors:
            self.errors[field] = message

    def check(self, ok: bool, field: str, message: str) -> None:
        if not ok:
            self.add_error(field, message)

    @staticmethod
    def check_string_length(value: str, minimum: int, maximum: int) -> bool:
        return minimum <= len(value) <= maximum
