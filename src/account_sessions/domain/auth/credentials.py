"""Normalization helpers for account credential inputs."""

from __future__ import annotations


def normalize_account_email(*, email: str) -> str:
    """Normalize one email address for case-insensitive storage and lookup."""

    normalized = email.strip().lower()
    if not normalized:
        raise ValueError("email cannot be blank")
    return normalized
