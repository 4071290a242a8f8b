"""FastAPI router for account registration, activation and self-service endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Header

from account_sessions.application.dto.account_models import (
    AccountEnvelope,
    AccountResponse,
    AccountUpdateRequest,
    LoginRequest,
    MessageResponse,
    PasswordResetRequest,
    PasswordUpdateRequest,
    RegisterRequest,
    RegisterResponse,
    SessionTokensResponse,
    TokenRequest,
    TokenResponse,
)
from account_sessions.application.errors import INVALID_OR_EXPIRED_TOKEN_MESSAGE
from account_sessions.application.services.account_lifecycle_service import (
    AccountLifecycleService,
)
from account_sessions.domain.auth.permissions import Permission
from account_sessions.infrastructure.http.auth_guard import AccountAuthGuard
from account_sessions.infrastructure.http.errors import translate_lifecycle_errors

PASSWORD_RESET_MESSAGE = "an email will be sent to you containing password reset instructions"
PASSWORD_UPDATED_MESSAGE = "your password was successfully reset"


def build_account_router(
    *,
    lifecycle: AccountLifecycleService,
    auth_guard: AccountAuthGuard,
) -> APIRouter:
    """Build router exposing account lifecycle endpoints."""

    router = APIRouter(prefix="/v1/users", tags=["accounts"])

    @router.post("/new", response_model=RegisterResponse, status_code=201)
    async def register(payload: RegisterRequest) -> RegisterResponse:
        with translate_lifecycle_errors(operation="register"):
            result = await lifecycle.register(
                username=payload.username,
                email=payload.email,
                password=payload.password,
            )
        return RegisterResponse(token=result.activation_token.plaintext)

    @router.put("/activate", response_model=AccountEnvelope)
    async def activate(payload: TokenRequest) -> AccountEnvelope:
        with translate_lifecycle_errors(
            operation="activate",
            not_found_detail=INVALID_OR_EXPIRED_TOKEN_MESSAGE,
        ):
            account = await lifecycle.activate(token=payload.token)
        return AccountEnvelope(user=AccountResponse.from_record(account))

    @router.post("/authenticate", response_model=SessionTokensResponse, status_code=201)
    async def authenticate(payload: LoginRequest) -> SessionTokensResponse:
        with translate_lifecycle_errors(operation="login"):
            tokens = await lifecycle.login(username=payload.username, password=payload.password)
        return SessionTokensResponse(
            access_token=TokenResponse.from_issued(tokens.access_token),
            refresh_token=TokenResponse.from_issued(tokens.refresh_token),
        )

    @router.post("/password/reset", response_model=MessageResponse, status_code=202)
    async def request_password_reset(payload: PasswordResetRequest) -> MessageResponse:
        with translate_lifecycle_errors(operation="request_password_reset"):
            await lifecycle.request_password_reset(email=payload.email)
        return MessageResponse(message=PASSWORD_RESET_MESSAGE)

    @router.put("/password/update", response_model=MessageResponse)
    async def update_password(payload: PasswordUpdateRequest) -> MessageResponse:
        with translate_lifecycle_errors(
            operation="update_password",
            not_found_detail=INVALID_OR_EXPIRED_TOKEN_MESSAGE,
        ):
            await lifecycle.update_password(token=payload.token, password=payload.password)
        return MessageResponse(message=PASSWORD_UPDATED_MESSAGE)

    @router.get("/account/{username}", response_model=AccountEnvelope)
    async def get_account(
        username: str,
        authorization: Annotated[str | None, Header()] = None,
    ) -> AccountEnvelope:
        with translate_lifecycle_errors(operation="get_account"):
            identity = await auth_guard.resolve_identity(authorization_header=authorization)
            await lifecycle.authorize(identity, Permission.READ_USER)
            account = await lifecycle.get_account(identity, username=username)
        return AccountEnvelope(user=AccountResponse.from_record(account))

    @router.put("/account/{username}/update", response_model=AccountEnvelope)
    async def update_account(
        username: str,
        payload: AccountUpdateRequest,
        authorization: Annotated[str | None, Header()] = None,
    ) -> AccountEnvelope:
        with translate_lifecycle_errors(operation="update_account"):
            identity = await auth_guard.resolve_identity(authorization_header=authorization)
            await lifecycle.authorize(identity, Permission.READ_USER, Permission.WRITE_USER)
            result = await lifecycle.update_account(
                identity,
                username=username,
                email=payload.email,
                password=payload.password,
            )
        return AccountEnvelope(user=AccountResponse.from_record(result.account))

    return router
