"""Account lifecycle workflows: registration, activation, sessions and resets.

Each workflow that touches more than one row runs in a single unit of work.
Old token state for a scope is always deleted before the replacement is
minted, and notifications are dispatched only after the commit succeeds.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from account_sessions.application.errors import (
    AuthenticationRequiredError,
    ConflictError,
    FieldValidationError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)
from account_sessions.application.ports.account_repository_port import (
    AccountCreateInput,
    AccountRecord,
    AccountUpdateInput,
    DuplicateAccountFieldError,
)
from account_sessions.application.ports.notifier_port import (
    ACTIVATION_TEMPLATE,
    PASSWORD_RESET_TEMPLATE,
    NotificationDispatcherPort,
)
from account_sessions.application.ports.password_hasher_port import PasswordHasherPort
from account_sessions.application.ports.token_codec_port import TokenCodecPort
from account_sessions.application.ports.token_repository_port import (
    IssuedToken,
    TokenConflictError,
)
from account_sessions.application.ports.unit_of_work_port import (
    UnitOfWorkFactory,
    UnitOfWorkPort,
)
from account_sessions.domain.auth.account_rules import AccountInput
from account_sessions.domain.auth.credentials import normalize_account_email
from account_sessions.domain.auth.identity import AccountSnapshot, CallerIdentity
from account_sessions.domain.auth.permissions import Permission
from account_sessions.domain.auth.token_scope import TokenScope, ttl_for_scope
from account_sessions.domain.validator import Validator

logger = logging.getLogger(__name__)

_DUPLICATE_FIELD_MESSAGES = {
    "username": "a user with this username already exists",
    "email": "a user with this email address already exists",
}


@dataclass(frozen=True)
class RegistrationResult:
    """Newly created account and its single-use activation token."""

    account: AccountRecord
    activation_token: IssuedToken


@dataclass(frozen=True)
class SessionTokens:
    """Access/refresh pair issued by login or refresh."""

    access_token: IssuedToken
    refresh_token: IssuedToken


@dataclass(frozen=True)
class AccountUpdateResult:
    """Updated account; carries a new activation token when the email changed."""

    account: AccountRecord
    activation_token: IssuedToken | None = None


class AccountLifecycleService:
    """Compose validation, hashing, token rotation and grants into workflows."""

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        password_hasher: PasswordHasherPort,
        token_codec: TokenCodecPort,
        notifications: NotificationDispatcherPort | None = None,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._password_hasher = password_hasher
        self._token_codec = token_codec
        self._notifications = notifications

    async def register(self, *, username: str, email: str, password: str) -> RegistrationResult:
        """Create an unactivated account with read access and an activation token."""

        account_input = AccountInput(username=username, email=email, password=password)
        _raise_if_invalid(account_input.validate_registration())

        password_hash = await self._hash_password(password)
        async with self._unit_of_work_factory() as uow:
            try:
                account = await uow.accounts.insert(
                    AccountCreateInput(
                        username=username,
                        email=normalize_account_email(email=email),
                        password_hash=password_hash,
                    )
                )
            except DuplicateAccountFieldError as error:
                raise _conflict(error.field) from error

            await uow.permissions.add(
                account_id=account.account_id,
                permissions=[Permission.READ_USER],
            )
            activation_token = await self._mint_token(
                uow,
                account_id=account.account_id,
                scope=TokenScope.ACTIVATION,
            )
            await uow.commit()

        logger.info("account_registered account_id=%s", account.account_id)
        self._notify(
            account.email,
            ACTIVATION_TEMPLATE,
            {"activation_token": activation_token.plaintext},
        )
        return RegistrationResult(account=account, activation_token=activation_token)

    async def activate(self, *, token: str) -> AccountRecord:
        """Consume an activation token, activate the account and grant write access."""

        token_hash = self._hash_presented_token(token)
        async with self._unit_of_work_factory() as uow:
            account = await uow.tokens.get_account_by_token(
                scope=TokenScope.ACTIVATION,
                token_hash=token_hash,
            )
            if account is None:
                raise NotFoundError()

            activated = await uow.accounts.update(
                AccountUpdateInput(
                    account_id=account.account_id,
                    expected_version=account.version,
                    email=account.email,
                    password_hash=account.password_hash,
                    activated=True,
                )
            )
            if activated is None:
                raise NotFoundError()

            await uow.permissions.add(
                account_id=account.account_id,
                permissions=[Permission.WRITE_USER],
            )
            await uow.tokens.delete(account_id=account.account_id, scope=TokenScope.ACTIVATION)
            await uow.commit()

        logger.info("account_activated account_id=%s", activated.account_id)
        return activated

    async def login(self, *, username: str, password: str) -> SessionTokens:
        """Verify credentials and replace any live session with a new token pair."""

        _raise_if_invalid(AccountInput(username=username, password=password).validate_login())

        async with self._unit_of_work_factory() as uow:
            account = await uow.accounts.get_by_username(username=username)
        if account is None:
            logger.info("login_failed reason=unknown_username")
            raise NotFoundError()

        matches = await asyncio.to_thread(
            self._password_hasher.verify_password,
            password=password,
            password_hash=account.password_hash,
        )
        if not matches:
            logger.info("login_failed account_id=%s reason=password_mismatch", account.account_id)
            raise NotFoundError()

        async with self._unit_of_work_factory() as uow:
            await uow.tokens.delete(account_id=account.account_id, scope=TokenScope.ACCESS)
            await uow.tokens.delete(account_id=account.account_id, scope=TokenScope.REFRESH)
            tokens = await self._mint_session(uow, account_id=account.account_id)
            await uow.commit()

        logger.info("login_succeeded account_id=%s", account.account_id)
        return tokens

    async def refresh(self, *, token: str) -> SessionTokens:
        """Rotate the full session pair; the presented refresh token becomes invalid."""

        token_hash = self._hash_presented_token(token)
        async with self._unit_of_work_factory() as uow:
            account = await uow.tokens.get_account_by_token(
                scope=TokenScope.REFRESH,
                token_hash=token_hash,
            )
            if account is None:
                raise NotFoundError()

            consumed = await uow.tokens.delete(
                account_id=account.account_id,
                scope=TokenScope.REFRESH,
            )
            if consumed == 0:
                # Another refresh consumed the same token first.
                raise NotFoundError()
            await uow.tokens.delete(account_id=account.account_id, scope=TokenScope.ACCESS)
            tokens = await self._mint_session(uow, account_id=account.account_id)
            await uow.commit()

        logger.info("session_refreshed account_id=%s", account.account_id)
        return tokens

    async def logout(self, identity: CallerIdentity) -> None:
        """Delete the caller's access and refresh tokens."""

        account = _require_authenticated(identity)
        async with self._unit_of_work_factory() as uow:
            await uow.tokens.delete(account_id=account.account_id, scope=TokenScope.ACCESS)
            await uow.tokens.delete(account_id=account.account_id, scope=TokenScope.REFRESH)
            await uow.commit()

        logger.info("logout_succeeded account_id=%s", account.account_id)

    async def request_password_reset(self, *, email: str) -> IssuedToken:
        """Replace any pending reset token and mail the new one to the account."""

        _raise_if_invalid(AccountInput(email=email).validate_email_only())

        async with self._unit_of_work_factory() as uow:
            account = await uow.accounts.get_by_email(email=normalize_account_email(email=email))
            if account is None:
                raise NotFoundError()

            await uow.tokens.delete(
                account_id=account.account_id,
                scope=TokenScope.PASSWORD_RESET,
            )
            reset_token = await self._mint_token(
                uow,
                account_id=account.account_id,
                scope=TokenScope.PASSWORD_RESET,
            )
            await uow.commit()

        logger.info("password_reset_requested account_id=%s", account.account_id)
        self._notify(
            account.email,
            PASSWORD_RESET_TEMPLATE,
            {"email": account.email, "reset_token": reset_token.plaintext},
        )
        return reset_token

    async def update_password(self, *, token: str, password: str) -> AccountRecord:
        """Consume a reset token and store the new password hash."""

        validator = self._token_codec.validate_plaintext(token)
        for field, message in AccountInput(password=password).validate_password_only().errors.items():
            validator.add_error(field, message)
        _raise_if_invalid(validator)

        token_hash = self._token_codec.hash_token(token)
        password_hash = await self._hash_password(password)
        async with self._unit_of_work_factory() as uow:
            account = await uow.tokens.get_account_by_token(
                scope=TokenScope.PASSWORD_RESET,
                token_hash=token_hash,
            )
            if account is None:
                raise NotFoundError()

            updated = await uow.accounts.update(
                AccountUpdateInput(
                    account_id=account.account_id,
                    expected_version=account.version,
                    email=account.email,
                    password_hash=password_hash,
                    activated=account.activated,
                )
            )
            if updated is None:
                raise NotFoundError()

            await uow.tokens.delete(
                account_id=account.account_id,
                scope=TokenScope.PASSWORD_RESET,
            )
            await uow.commit()

        logger.info("password_updated account_id=%s", updated.account_id)
        return updated

    async def update_account(
        self,
        identity: CallerIdentity,
        *,
        username: str,
        email: str | None = None,
        password: str | None = None,
    ) -> AccountUpdateResult:
        """Change email and/or password of the caller's own account.

        A changed email deactivates the account and issues a new activation
        token; a password-only change keeps the activation state.
        """

        caller = _require_owner(identity, username=username)
        _raise_if_invalid(AccountInput(email=email, password=password).validate_update())

        password_hash = await self._hash_password(password) if password is not None else None
        activation_token: IssuedToken | None = None
        async with self._unit_of_work_factory() as uow:
            current = await uow.accounts.get_by_id(account_id=caller.account_id)
            if current is None:
                raise NotFoundError()

            new_email = normalize_account_email(email=email) if email is not None else current.email
            email_changed = new_email != current.email
            try:
                updated = await uow.accounts.update(
                    AccountUpdateInput(
                        account_id=current.account_id,
                        expected_version=current.version,
                        email=new_email,
                        password_hash=password_hash or current.password_hash,
                        activated=False if email_changed else current.activated,
                    )
                )
            except DuplicateAccountFieldError as error:
                raise _conflict(error.field) from error
            if updated is None:
                raise NotFoundError()

            if email_changed:
                await uow.tokens.delete(
                    account_id=updated.account_id,
                    scope=TokenScope.ACTIVATION,
                )
                activation_token = await self._mint_token(
                    uow,
                    account_id=updated.account_id,
                    scope=TokenScope.ACTIVATION,
                )
            await uow.commit()

        logger.info(
            "account_updated account_id=%s email_changed=%s password_changed=%s",
            updated.account_id,
            activation_token is not None,
            password_hash is not None,
        )
        if activation_token is not None:
            self._notify(
                updated.email,
                ACTIVATION_TEMPLATE,
                {"activation_token": activation_token.plaintext},
            )
        return AccountUpdateResult(account=updated, activation_token=activation_token)

    async def get_account(self, identity: CallerIdentity, *, username: str) -> AccountRecord:
        """Return the caller's own account."""

        caller = _require_owner(identity, username=username)
        async with self._unit_of_work_factory() as uow:
            account = await uow.accounts.get_by_id(account_id=caller.account_id)
        if account is None:
            raise NotFoundError()
        return account

    async def authenticate(self, *, token: str) -> CallerIdentity:
        """Resolve a bearer access token to the calling account."""

        if not self._token_codec.validate_plaintext(token).valid:
            raise NotFoundError()

        token_hash = self._token_codec.hash_token(token)
        async with self._unit_of_work_factory() as uow:
            account = await uow.tokens.get_account_by_token(
                scope=TokenScope.ACCESS,
                token_hash=token_hash,
            )
        if account is None:
            raise NotFoundError()
        return CallerIdentity.authenticated(account.snapshot())

    async def authorize(
        self,
        identity: CallerIdentity,
        *permissions: Permission,
    ) -> AccountSnapshot:
        """Require an activated caller holding every listed capability."""

        account = _require_authenticated(identity)
        if not account.activated:
            raise PermissionDeniedError("account is not activated")
        if not permissions:
            return account

        async with self._unit_of_work_factory() as uow:
            granted = await uow.permissions.get(account_id=account.account_id)
        if not granted.includes_all(permissions):
            raise PermissionDeniedError("missing required permission")
        return account

    async def _mint_session(self, uow: UnitOfWorkPort, *, account_id: int) -> SessionTokens:
        access_token = await self._mint_token(uow, account_id=account_id, scope=TokenScope.ACCESS)
        refresh_token = await self._mint_token(uow, account_id=account_id, scope=TokenScope.REFRESH)
        return SessionTokens(access_token=access_token, refresh_token=refresh_token)

    async def _mint_token(
        self,
        uow: UnitOfWorkPort,
        *,
        account_id: int,
        scope: TokenScope,
    ) -> IssuedToken:
        """Mint and store one token; a concurrent row for the scope is replaced once."""

        token = self._token_codec.generate(
            account_id=account_id,
            ttl=ttl_for_scope(scope),
            scope=scope,
        )
        try:
            await uow.tokens.create_token(token)
        except TokenConflictError:
            logger.warning("token_conflict_retry account_id=%s scope=%s", account_id, scope.value)
            await uow.tokens.delete(account_id=account_id, scope=scope)
            try:
                await uow.tokens.create_token(token)
            except TokenConflictError as error:
                raise StorageError(
                    f"concurrent token writes for account_id={account_id} scope={scope.value}"
                ) from error
        return token

    def _hash_presented_token(self, token: str) -> bytes:
        _raise_if_invalid(self._token_codec.validate_plaintext(token))
        return self._token_codec.hash_token(token)

    async def _hash_password(self, password: str) -> str:
        return await asyncio.to_thread(self._password_hasher.hash_password, password)

    def _notify(self, recipient: str, template_name: str, data: Mapping[str, Any]) -> None:
        if self._notifications is None:
            logger.debug("notification_skipped template=%s", template_name)
            return
        self._notifications.dispatch(recipient, template_name, data)


def _raise_if_invalid(validator: Validator) -> None:
    if not validator.valid:
        raise FieldValidationError(validator.errors)


def _conflict(field: str) -> ConflictError:
    return ConflictError({field: _DUPLICATE_FIELD_MESSAGES[field]})


def _require_authenticated(identity: CallerIdentity) -> AccountSnapshot:
    if identity.is_anonymous or identity.account is None:
        raise AuthenticationRequiredError("authentication required")
    return identity.account


def _require_owner(identity: CallerIdentity, *, username: str) -> AccountSnapshot:
    account = _require_authenticated(identity)
    if account.username != username:
        raise PermissionDeniedError("callers may only access their own account")
    return account
