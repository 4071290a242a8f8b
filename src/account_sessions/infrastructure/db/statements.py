"""Bounded statement execution shared by the SQLAlchemy repositories."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from account_sessions.application.errors import StorageError

DEFAULT_STATEMENT_TIMEOUT_SECONDS = 3.0


async def execute_bounded(
    session: AsyncSession,
    statement: sa.Executable,
    *,
    timeout_seconds: float,
) -> sa.Result[Any]:
    """Execute one statement within a deadline.

    Integrity violations propagate unchanged so callers can map them to
    domain conflicts; every other failure becomes `StorageError`.
    """

    try:
        async with asyncio.timeout(timeout_seconds):
            return await session.execute(statement)
    except IntegrityError:
        raise
    except TimeoutError as error:
        raise StorageError(f"storage statement timed out after {timeout_seconds}s") from error
    except SQLAlchemyError as error:
        raise StorageError(f"storage statement failed: {error}") from error


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps returned by drivers without tz support."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
