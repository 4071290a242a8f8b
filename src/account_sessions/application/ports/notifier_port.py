"""Ports for outbound account notifications."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final, Protocol

ACTIVATION_TEMPLATE: Final = "activation"
PASSWORD_RESET_TEMPLATE: Final = "password_reset"


class NotifierPort(Protocol):
    """Deliver one templated message to a recipient address."""

    async def send(self, recipient: str, template_name: str, data: Mapping[str, Any]) -> None:
        """Render and deliver one message; raise on delivery failure."""


class NotificationDispatcherPort(Protocol):
    """Hand notifications to background delivery without blocking the caller."""

    def dispatch(self, recipient: str, template_name: str, data: Mapping[str, Any]) -> None:
        """Schedule delivery; failures are reported by the dispatcher itself."""
