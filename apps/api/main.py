"""account API entrypoint and HTTP route wiring."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from account_sessions.application.dto.account_models import HealthResponse
from account_sessions.application.ports.notifier_port import NotifierPort
from account_sessions.application.services.account_lifecycle_service import (
    AccountLifecycleService,
)
from account_sessions.application.services.background_tasks import (
    BackgroundNotificationDispatcher,
    BackgroundTaskRunner,
)
from account_sessions.config.settings import Settings, load_settings
from account_sessions.infrastructure.db.session import create_session_factory
from account_sessions.infrastructure.db.unit_of_work import build_unit_of_work_factory
from account_sessions.infrastructure.http.account_router import build_account_router
from account_sessions.infrastructure.http.auth_guard import AccountAuthGuard
from account_sessions.infrastructure.http.middleware import install_request_middleware
from account_sessions.infrastructure.http.token_router import build_token_router
from account_sessions.infrastructure.logging import configure_logging
from account_sessions.infrastructure.mail.smtp_notifier import LoggingNotifier, SmtpNotifier
from account_sessions.infrastructure.security.password_hasher import BcryptPasswordHasher
from account_sessions.infrastructure.security.token_service import OpaqueTokenService

API_VERSION = "1.0.0"
logger = logging.getLogger(__name__)


def build_notifier(settings: Settings) -> NotifierPort:
    """Build SMTP notifier when configured, otherwise a logging stand-in."""

    if settings.smtp_host is None or settings.smtp_sender is None:
        logger.warning("smtp_unconfigured notifications=logged_only")
        return LoggingNotifier()

    return SmtpNotifier(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        sender=settings.smtp_sender,
    )


def build_lifecycle_service(
    settings: Settings,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    runner: BackgroundTaskRunner,
    notifier: NotifierPort | None = None,
) -> AccountLifecycleService:
    """Build lifecycle service with SQLAlchemy-backed dependencies."""

    return AccountLifecycleService(
        unit_of_work_factory=build_unit_of_work_factory(
            session_factory,
            statement_timeout_seconds=settings.db_statement_timeout_seconds,
        ),
        password_hasher=BcryptPasswordHasher(rounds=settings.bcrypt_rounds),
        token_codec=OpaqueTokenService(),
        notifications=BackgroundNotificationDispatcher(
            runner=runner,
            notifier=notifier if notifier is not None else build_notifier(settings),
        ),
    )


def create_app(
    *,
    settings: Settings | None = None,
    lifecycle: AccountLifecycleService | None = None,
    background_runner: BackgroundTaskRunner | None = None,
    notifier: NotifierPort | None = None,
) -> FastAPI:
    """Create FastAPI app exposing account and token lifecycle routes."""

    if settings is None:
        settings = load_settings()
    configure_logging(level=settings.log_level)

    runner = background_runner if background_runner is not None else BackgroundTaskRunner()
    engine: AsyncEngine | None = None
    if lifecycle is None:
        session_factory = create_session_factory(settings.database_url)
        engine = session_factory.kw["bind"]
        lifecycle = build_lifecycle_service(
            settings,
            session_factory=session_factory,
            runner=runner,
            notifier=notifier,
        )
    drain_timeout_seconds = settings.shutdown_drain_timeout_seconds

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info("api_started version=%s", API_VERSION)
        yield
        cancelled = await runner.drain(timeout_seconds=drain_timeout_seconds)
        if engine is not None:
            await engine.dispose()
        logger.info("api_stopped cancelled_background_tasks=%s", cancelled)

    app = FastAPI(lifespan=lifespan)
    install_request_middleware(app)

    auth_guard = AccountAuthGuard(lifecycle=lifecycle)
    app.include_router(build_account_router(lifecycle=lifecycle, auth_guard=auth_guard))
    app.include_router(build_token_router(lifecycle=lifecycle, auth_guard=auth_guard))

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="available")

    return app


def run_asgi_server(*, settings: Settings | None = None) -> None:
    """Run the account API as a long-lived ASGI process using application factory mode."""

    if settings is None:
        settings = load_settings()
    uvicorn.run(
        "apps.api.main:create_app",
        host=settings.api_host,
        port=settings.api_port,
        factory=True,
    )


def main() -> None:
    """Run account API runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()
