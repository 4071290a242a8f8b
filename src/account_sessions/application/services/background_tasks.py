"""Supervised fire-and-forget work that runs after a workflow commits."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from account_sessions.application.ports.notifier_port import (
    NotificationDispatcherPort,
    NotifierPort,
)

BackgroundWork = Callable[[], Awaitable[None]]
logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Track in-flight background tasks, contain their failures, drain on shutdown."""

    def __init__(self) -> None:
        self._in_flight: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def submit(self, name: str, work: BackgroundWork) -> asyncio.Task[None]:
        """Schedule work on the running loop without awaiting it."""

        if self._closed:
            raise RuntimeError("background task runner is shut down")

        task = asyncio.get_running_loop().create_task(self._run(name, work), name=name)
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def drain(self, *, timeout_seconds: float) -> int:
        """Stop accepting work and wait for in-flight tasks; return how many were cancelled."""

        self._closed = True
        pending = set(self._in_flight)
        if not pending:
            return 0

        logger.info("background_tasks_draining count=%s", len(pending))
        _, still_running = await asyncio.wait(pending, timeout=timeout_seconds)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning(
                "background_tasks_cancelled count=%s timeout_seconds=%s",
                len(still_running),
                timeout_seconds,
            )
        return len(still_running)

    async def _run(self, name: str, work: BackgroundWork) -> None:
        try:
            await work()
        except Exception:  # noqa: BLE001
            logger.exception("background_task_failed name=%s", name)
            return
        logger.info("background_task_done name=%s", name)


class BackgroundNotificationDispatcher(NotificationDispatcherPort):
    """Deliver notifications through the background runner."""

    def __init__(self, *, runner: BackgroundTaskRunner, notifier: NotifierPort) -> None:
        self._runner = runner
        self._notifier = notifier

    def dispatch(self, recipient: str, template_name: str, data: Mapping[str, Any]) -> None:
        payload = dict(data)

        async def _send() -> None:
            await self._notifier.send(recipient, template_name, payload)

        self._runner.submit(f"notify:{template_name}", _send)
