"""Bearer token parsing and caller identity resolution."""

from __future__ import annotations

from account_sessions.application.errors import NotFoundError
from account_sessions.application.services.account_lifecycle_service import (
    AccountLifecycleService,
)
from account_sessions.domain.auth.identity import CallerIdentity


class InvalidAuthTokenError(PermissionError):
    """Raised when bearer token header or persisted token is invalid."""


def extract_bearer_token(authorization_header: str) -> str:
    """Extract opaque token from standard `Authorization: Bearer <token>` header."""

    parts = authorization_header.strip().split()
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1].strip():
        raise InvalidAuthTokenError("invalid or missing authentication token")

    return parts[1]


class AccountAuthGuard:
    """Resolve the caller for every request; no header means anonymous."""

    def __init__(self, *, lifecycle: AccountLifecycleService) -> None:
        self._lifecycle = lifecycle

    async def resolve_identity(self, *, authorization_header: str | None) -> CallerIdentity:
        """Return the authenticated caller, or the anonymous identity without a header."""

        if authorization_header is None or not authorization_header.strip():
            return CallerIdentity.anonymous()

        token = extract_bearer_token(authorization_header)
        try:
            return await self._lifecycle.authenticate(token=token)
        except NotFoundError as exc:
            raise InvalidAuthTokenError("invalid or missing authentication token") from exc
