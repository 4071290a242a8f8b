from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.config import Config

from account_sessions.application.ports.account_repository_port import (
    AccountCreateInput,
    AccountUpdateInput,
    DuplicateAccountFieldError,
)
from account_sessions.application.ports.token_repository_port import TokenConflictError
from account_sessions.domain.auth.permissions import Permission, PermissionSet
from account_sessions.domain.auth.token_scope import TokenScope
from account_sessions.infrastructure.db.session import create_session_factory
from account_sessions.infrastructure.db.unit_of_work import build_unit_of_work_factory
from account_sessions.infrastructure.security.token_service import OpaqueTokenService
from alembic import command


def _upgrade_head(tmp_path: Path, filename: str) -> tuple[str, str]:
    db_path = tmp_path / filename
    sync_url = f"sqlite+pysqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    command.upgrade(alembic_config, "head")

    return sync_url, async_url


def _alice() -> AccountCreateInput:
    return AccountCreateInput(
        username="alice",
        email="alice@example.com",
        password_hash="hash-a",
    )


@pytest.mark.asyncio
async def test_insert_and_lookup_account(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "accounts_insert.db")
    unit_of_work = build_unit_of_work_factory(create_session_factory(async_url))

    async with unit_of_work() as uow:
        created = await uow.accounts.insert(_alice())
        await uow.commit()

    assert created.account_id > 0
    assert created.activated is False
    assert created.version == 1
    assert created.created_at.tzinfo is not None

    async with unit_of_work() as uow:
        by_id = await uow.accounts.get_by_id(account_id=created.account_id)
        by_username = await uow.accounts.get_by_username(username="alice")
        by_email = await uow.accounts.get_by_email(email="alice@example.com")
        missing = await uow.accounts.get_by_username(username="bob")

    assert by_id == by_username == by_email == created
    assert missing is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("payload", "field"),
    [
        (AccountCreateInput("alice", "b@example.com", "h"), "username"),
        (AccountCreateInput("bob", "alice@example.com", "h"), "email"),
    ],
)
async def test_duplicate_insert_names_the_violated_field(
    tmp_path: Path,
    payload: AccountCreateInput,
    field: str,
) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, f"accounts_duplicate_{field}.db")
    unit_of_work = build_unit_of_work_factory(create_session_factory(async_url))
    async with unit_of_work() as uow:
        await uow.accounts.insert(_alice())
        await uow.commit()

    with pytest.raises(DuplicateAccountFieldError) as exc_info:
        async with unit_of_work() as uow:
            await uow.accounts.insert(payload)
            await uow.commit()

    assert exc_info.value.field == field
    engine = sa.create_engine(sync_url)
    with engine.begin() as connection:
        count = connection.execute(sa.text("SELECT COUNT(*) FROM users")).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_update_with_stale_version_changes_nothing(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "accounts_stale.db")
    unit_of_work = build_unit_of_work_factory(create_session_factory(async_url))
    async with unit_of_work() as uow:
        created = await uow.accounts.insert(_alice())
        await uow.commit()

    async with unit_of_work() as uow:
        first = await uow.accounts.update(
            AccountUpdateInput(
                account_id=created.account_id,
                expected_version=created.version,
                email=created.email,
                password_hash="hash-b",
                activated=True,
            )
        )
        await uow.commit()

    async with unit_of_work() as uow:
        stale = await uow.accounts.update(
            AccountUpdateInput(
                account_id=created.account_id,
                expected_version=created.version,
                email="stale@example.com",
                password_hash="hash-c",
                activated=False,
            )
        )
        await uow.commit()
        current = await uow.accounts.get_by_id(account_id=created.account_id)

    assert first is not None
    assert first.version == created.version + 1
    assert first.activated is True
    assert stale is None
    assert current == first


@pytest.mark.asyncio
async def test_exit_without_commit_rolls_back(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "accounts_rollback.db")
    unit_of_work = build_unit_of_work_factory(create_session_factory(async_url))

    async with unit_of_work() as uow:
        await uow.accounts.insert(_alice())

    async with unit_of_work() as uow:
        assert await uow.accounts.get_by_username(username="alice") is None


@pytest.mark.asyncio
async def test_token_lookup_ignores_expired_rows_but_get_returns_them(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "tokens_expiry.db")
    session_factory = create_session_factory(async_url)
    unit_of_work = build_unit_of_work_factory(session_factory)
    later = build_unit_of_work_factory(
        session_factory,
        now=lambda: datetime.now(tz=UTC) + timedelta(days=2),
    )
    async with unit_of_work() as uow:
        account = await uow.accounts.insert(_alice())
        token = OpaqueTokenService().generate(
            account_id=account.account_id,
            ttl=timedelta(hours=24),
            scope=TokenScope.ACCESS,
        )
        await uow.tokens.create_token(token)
        await uow.commit()

    async with unit_of_work() as uow:
        live = await uow.tokens.get_account_by_token(
            scope=TokenScope.ACCESS,
            token_hash=token.token_hash,
        )
        wrong_scope = await uow.tokens.get_account_by_token(
            scope=TokenScope.REFRESH,
            token_hash=token.token_hash,
        )
    async with later() as uow:
        expired = await uow.tokens.get_account_by_token(
            scope=TokenScope.ACCESS,
            token_hash=token.token_hash,
        )
        stored = await uow.tokens.get(account_id=account.account_id, scope=TokenScope.ACCESS)

    assert live is not None and live.account_id == account.account_id
    assert wrong_scope is None
    assert expired is None
    assert stored is not None
    assert stored.token_hash == token.token_hash
    assert stored.expires_at == token.expires_at


@pytest.mark.asyncio
async def test_token_conflict_keeps_transaction_usable(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "tokens_conflict.db")
    unit_of_work = build_unit_of_work_factory(create_session_factory(async_url))
    codec = OpaqueTokenService()

    async with unit_of_work() as uow:
        account = await uow.accounts.insert(_alice())
        first = codec.generate(
            account_id=account.account_id,
            ttl=timedelta(hours=1),
            scope=TokenScope.REFRESH,
        )
        second = codec.generate(
            account_id=account.account_id,
            ttl=timedelta(hours=1),
            scope=TokenScope.REFRESH,
        )
        await uow.tokens.create_token(first)
        with pytest.raises(TokenConflictError):
            await uow.tokens.create_token(second)
        assert await uow.tokens.delete(account_id=account.account_id, scope=TokenScope.REFRESH) == 1
        await uow.tokens.create_token(second)
        await uow.commit()

    async with unit_of_work() as uow:
        stored = await uow.tokens.get(account_id=account.account_id, scope=TokenScope.REFRESH)
    assert stored is not None
    assert stored.token_hash == second.token_hash


@pytest.mark.asyncio
async def test_token_delete_is_idempotent(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "tokens_delete.db")
    unit_of_work = build_unit_of_work_factory(create_session_factory(async_url))

    async with unit_of_work() as uow:
        account = await uow.accounts.insert(_alice())
        await uow.tokens.create_token(
            OpaqueTokenService().generate(
                account_id=account.account_id,
                ttl=timedelta(hours=1),
                scope=TokenScope.PASSWORD_RESET,
            )
        )
        await uow.commit()

    async with unit_of_work() as uow:
        first = await uow.tokens.delete(
            account_id=account.account_id,
            scope=TokenScope.PASSWORD_RESET,
        )
        second = await uow.tokens.delete(
            account_id=account.account_id,
            scope=TokenScope.PASSWORD_RESET,
        )
        await uow.commit()

    assert (first, second) == (1, 0)


@pytest.mark.asyncio
async def test_permission_grants_are_idempotent(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "permissions.db")
    unit_of_work = build_unit_of_work_factory(create_session_factory(async_url))

    async with unit_of_work() as uow:
        account = await uow.accounts.insert(_alice())
        await uow.permissions.add(account_id=account.account_id, permissions=[Permission.READ_USER])
        await uow.permissions.add(account_id=account.account_id, permissions=[Permission.READ_USER])
        await uow.permissions.add(
            account_id=account.account_id,
            permissions=[Permission.READ_USER, Permission.WRITE_USER],
        )
        await uow.commit()

    async with unit_of_work() as uow:
        granted = await uow.permissions.get(account_id=account.account_id)
        empty = await uow.permissions.get(account_id=account.account_id + 1)

    assert granted == PermissionSet([Permission.READ_USER, Permission.WRITE_USER])
    assert len(empty) == 0
    engine = sa.create_engine(sync_url)
    with engine.begin() as connection:
        count = connection.execute(sa.text("SELECT COUNT(*) FROM user_permissions")).scalar_one()
    assert count == 2
