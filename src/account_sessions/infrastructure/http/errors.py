"""Translate lifecycle errors into HTTP responses."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import HTTPException

from account_sessions.application.errors import (
    INVALID_CREDENTIALS_MESSAGE,
    AuthenticationRequiredError,
    EntropyError,
    FieldValidationError,
    HashingError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)
from account_sessions.infrastructure.http.auth_guard import InvalidAuthTokenError

SERVER_ERROR_MESSAGE = "the server encountered a problem and could not process your request"
PERMISSION_DENIED_MESSAGE = "you do not have permission to perform this action"
INVALID_TOKEN_MESSAGE = "invalid or missing authentication token"
_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}
logger = logging.getLogger(__name__)


@contextmanager
def translate_lifecycle_errors(
    *,
    operation: str,
    not_found_detail: str = INVALID_CREDENTIALS_MESSAGE,
) -> Iterator[None]:
    """Map domain and infrastructure failures raised inside the block to HTTP errors.

    Token-consuming routes pass `not_found_detail` so an unknown or expired
    token reads as such instead of as a bad login.
    """

    try:
        yield
    except FieldValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=401, detail=not_found_detail) from exc
    except (InvalidAuthTokenError, AuthenticationRequiredError) as exc:
        raise HTTPException(
            status_code=401,
            detail=INVALID_TOKEN_MESSAGE,
            headers=_BEARER_CHALLENGE,
        ) from exc
    except PermissionDeniedError as exc:
        raise HTTPException(status_code=403, detail=PERMISSION_DENIED_MESSAGE) from exc
    except (StorageError, EntropyError, HashingError) as exc:
        logger.exception("request_failed operation=%s error=%s", operation, type(exc).__name__)
        raise HTTPException(status_code=500, detail=SERVER_ERROR_MESSAGE) from exc
