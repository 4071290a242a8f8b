from __future__ import annotations

from email.message import EmailMessage
from typing import Any

import pytest

from account_sessions.infrastructure.mail import smtp_notifier
from account_sessions.infrastructure.mail.smtp_notifier import (
    SmtpNotifier,
    UnknownMailTemplateError,
    redact_email,
    render_template,
)


class FakeSmtp:
    instances: list[FakeSmtp] = []

    def __init__(self, host: str, port: int, timeout: float) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.calls: list[str] = []
        self.messages: list[EmailMessage] = []
        FakeSmtp.instances.append(self)

    def __enter__(self) -> FakeSmtp:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.calls.append("quit")

    def starttls(self) -> None:
        self.calls.append("starttls")

    def login(self, username: str, password: str) -> None:
        self.calls.append(f"login:{username}")

    def send_message(self, message: EmailMessage) -> None:
        self.calls.append("send")
        self.messages.append(message)


def test_activation_template_renders_token_in_both_bodies() -> None:
    message = render_template("activation", {"activation_token": "ABCDEFGHIJKLMNOPQRSTUVWXYZ"})

    assert message["Subject"] == "Activate your account"
    plain = message.get_body(preferencelist=("plain",))
    html_part = message.get_body(preferencelist=("html",))
    assert plain is not None and html_part is not None
    assert '{"token": "ABCDEFGHIJKLMNOPQRSTUVWXYZ"}' in plain.get_content()
    assert "ABCDEFGHIJKLMNOPQRSTUVWXYZ" in html_part.get_content()


def test_password_reset_template_escapes_html_values() -> None:
    message = render_template(
        "password_reset",
        {"email": "<b>alice</b>@example.com", "reset_token": "TOKEN"},
    )

    html_part = message.get_body(preferencelist=("html",))
    assert html_part is not None
    assert "&lt;b&gt;alice&lt;/b&gt;@example.com" in html_part.get_content()


def test_unknown_template_raises() -> None:
    with pytest.raises(UnknownMailTemplateError):
        render_template("welcome", {})


def test_redact_email_keeps_domain_only() -> None:
    assert redact_email("alice@example.com") == "al***@example.com"
    assert redact_email("nonsense") == "redacted"


@pytest.mark.asyncio
async def test_smtp_notifier_sends_over_starttls(monkeypatch: pytest.MonkeyPatch) -> None:
    FakeSmtp.instances = []
    monkeypatch.setattr(smtp_notifier.smtplib, "SMTP", FakeSmtp)
    notifier = SmtpNotifier(
        host="smtp.example.com",
        port=587,
        username="mailer",
        password="secret",
        sender="no-reply@example.com",
    )

    await notifier.send("alice@example.com", "activation", {"activation_token": "TOKEN"})

    assert len(FakeSmtp.instances) == 1
    client = FakeSmtp.instances[0]
    assert (client.host, client.port) == ("smtp.example.com", 587)
    assert client.calls == ["starttls", "login:mailer", "send", "quit"]
    sent = client.messages[0]
    assert sent["To"] == "alice@example.com"
    assert sent["From"] == "no-reply@example.com"
