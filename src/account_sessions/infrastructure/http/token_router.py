"""FastAPI router for session token refresh and logout."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Header, Response

from account_sessions.application.dto.account_models import (
    SessionTokensResponse,
    TokenRequest,
    TokenResponse,
)
from account_sessions.application.errors import INVALID_OR_EXPIRED_TOKEN_MESSAGE
from account_sessions.application.services.account_lifecycle_service import (
    AccountLifecycleService,
)
from account_sessions.infrastructure.http.auth_guard import AccountAuthGuard
from account_sessions.infrastructure.http.errors import translate_lifecycle_errors


def build_token_router(
    *,
    lifecycle: AccountLifecycleService,
    auth_guard: AccountAuthGuard,
) -> APIRouter:
    """Build router exposing refresh and logout endpoints."""

    router = APIRouter(prefix="/v1/tokens", tags=["tokens"])

    @router.post("/refresh", response_model=SessionTokensResponse, status_code=201)
    async def refresh(payload: TokenRequest) -> SessionTokensResponse:
        with translate_lifecycle_errors(
            operation="refresh",
            not_found_detail=INVALID_OR_EXPIRED_TOKEN_MESSAGE,
        ):
            tokens = await lifecycle.refresh(token=payload.token)
        return SessionTokensResponse(
            access_token=TokenResponse.from_issued(tokens.access_token),
            refresh_token=TokenResponse.from_issued(tokens.refresh_token),
        )

    @router.delete("", status_code=204)
    async def logout(
        authorization: Annotated[str | None, Header()] = None,
    ) -> Response:
        with translate_lifecycle_errors(operation="logout"):
            identity = await auth_guard.resolve_identity(authorization_header=authorization)
            await lifecycle.logout(identity)
        return Response(status_code=204)

    return router
