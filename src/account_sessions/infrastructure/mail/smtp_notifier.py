"""SMTP notifier rendering account lifecycle mail templates."""

from __future__ import annotations

import asyncio
import html
import logging
import smtplib
from collections.abc import Mapping
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Final

from account_sessions.application.ports.notifier_port import (
    ACTIVATION_TEMPLATE,
    PASSWORD_RESET_TEMPLATE,
    NotifierPort,
)

_SMTP_TIMEOUT_SECONDS: Final = 5.0
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailTemplate:
    subject: str
    plain_body: str
    html_body: str


_TEMPLATES: Final[dict[str, MailTemplate]] = {
    ACTIVATION_TEMPLATE: MailTemplate(
        subject="Activate your account",
        plain_body=(
            "Welcome!\n\n"
            "Send a PUT request to /v1/users/activate with the JSON body\n"
            '{{"token": "{activation_token}"}}\n\n'
            "This token expires in 3 days and can be used once.\n"
        ),
        html_body=(
            "<p>Welcome!</p>"
            "<p>Send a <code>PUT</code> request to <code>/v1/users/activate</code> "
            "with the JSON body:</p>"
            '<pre><code>{{"token": "{activation_token}"}}</code></pre>'
            "<p>This token expires in 3 days and can be used once.</p>"
        ),
    ),
    PASSWORD_RESET_TEMPLATE: MailTemplate(
        subject="Reset your password",
        plain_body=(
            "A password reset was requested for {email}.\n\n"
            "Send a PUT request to /v1/users/password/update with the JSON body\n"
            '{{"token": "{reset_token}", "password": "<new password>"}}\n\n'
            "This token expires in 1 hour. Ignore this message if you did not ask for it.\n"
        ),
        html_body=(
            "<p>A password reset was requested for {email}.</p>"
            "<p>Send a <code>PUT</code> request to <code>/v1/users/password/update</code> "
            "with the JSON body:</p>"
            '<pre><code>{{"token": "{reset_token}", "password": "&lt;new password&gt;"}}'
            "</code></pre>"
            "<p>This token expires in 1 hour. Ignore this message if you did not ask for it.</p>"
        ),
    ),
}


class UnknownMailTemplateError(LookupError):
    """Raised when a notification names a template that does not exist."""


def render_template(template_name: str, data: Mapping[str, Any]) -> EmailMessage:
    """Render subject, plain and HTML bodies for one template into a message."""

    template = _TEMPLATES.get(template_name)
    if template is None:
        raise UnknownMailTemplateError(f"unknown mail template: {template_name}")

    escaped = {key: html.escape(str(value)) for key, value in data.items()}
    message = EmailMessage()
    message["Subject"] = template.subject
    message.set_content(template.plain_body.format_map(data))
    message.add_alternative(template.html_body.format_map(escaped), subtype="html")
    return message


def redact_email(email: str) -> str:
    """Redact one address for logging."""

    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class SmtpNotifier(NotifierPort):
    """Send rendered templates over SMTP with STARTTLS."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str | None,
        password: str | None,
        sender: str,
        timeout_seconds: float = _SMTP_TIMEOUT_SECONDS,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender = sender
        self._timeout_seconds = timeout_seconds

    async def send(self, recipient: str, template_name: str, data: Mapping[str, Any]) -> None:
        message = render_template(template_name, data)
        message["From"] = self._sender
        message["To"] = recipient
        await asyncio.to_thread(self._deliver, message)
        logger.info(
            "email_sent recipient=%s template=%s",
            redact_email(recipient),
            template_name,
        )

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout_seconds) as client:
            client.starttls()
            if self._username and self._password:
                client.login(self._username, self._password)
            client.send_message(message)


class LoggingNotifier(NotifierPort):
    """Development notifier that logs instead of sending mail."""

    async def send(self, recipient: str, template_name: str, data: Mapping[str, Any]) -> None:
        render_template(template_name, data)
        logger.info(
            "email_not_sent_smtp_unconfigured recipient=%s template=%s",
            redact_email(recipient),
            template_name,
        )
