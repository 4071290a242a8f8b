"""Pydantic models for account and token HTTP contracts."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from account_sessions.application.ports.account_repository_port import AccountRecord
from account_sessions.application.ports.token_repository_port import IssuedToken


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection."""

    model_config = ConfigDict(extra="forbid")


class RegisterRequest(StrictModel):
    username: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(StrictModel):
    username: str = ""
    password: str = ""


class TokenRequest(StrictModel):
    """Single presented token for activation or refresh."""

    token: str = ""


class PasswordResetRequest(StrictModel):
    email: str = ""


class PasswordUpdateRequest(StrictModel):
    token: str = ""
    password: str = ""


class AccountUpdateRequest(StrictModel):
    """Partial account update; omitted fields stay unchanged."""

    email: str | None = None
    password: str | None = None


class TokenResponse(StrictModel):
    token: str
    expiry: datetime

    @classmethod
    def from_issued(cls, token: IssuedToken) -> TokenResponse:
        return cls(token=token.plaintext, expiry=token.expires_at)


class RegisterResponse(StrictModel):
    token: str


class SessionTokensResponse(StrictModel):
    access_token: TokenResponse
    refresh_token: TokenResponse


class MessageResponse(StrictModel):
    message: str


class AccountResponse(StrictModel):
    id: int
    username: str
    email: str
    activated: bool

    @classmethod
    def from_record(cls, account: AccountRecord) -> AccountResponse:
        return cls(
            id=account.account_id,
            username=account.username,
            email=account.email,
            activated=account.activated,
        )


class AccountEnvelope(StrictModel):
    user: AccountResponse


class HealthResponse(StrictModel):
    status: str
