from __future__ import annotations

from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import sqlalchemy as sa
from alembic.config import Config
from fastapi.testclient import TestClient

from account_sessions.config.settings import Settings
from alembic import command
from apps.api.main import create_app

PASSWORD = "Pa55word!"


class RecordingNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    async def send(self, recipient: str, template_name: str, data: Mapping[str, Any]) -> None:
        self.sent.append((recipient, template_name, dict(data)))


def _upgrade_head(tmp_path: Path, filename: str) -> tuple[str, str]:
    db_path = tmp_path / filename
    sync_url = f"sqlite+pysqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    command.upgrade(alembic_config, "head")

    return sync_url, async_url


def _build_client(async_url: str, notifier: RecordingNotifier) -> TestClient:
    settings = Settings(
        _env_file=None,
        DATABASE_URL=async_url,
        BCRYPT_ROUNDS=4,
        SHUTDOWN_DRAIN_TIMEOUT_SECONDS=5,
    )
    return TestClient(create_app(settings=settings, notifier=notifier))


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _register_and_activate(client: TestClient, *, username: str, email: str) -> None:
    registered = client.post(
        "/v1/users/new",
        json={"username": username, "email": email, "password": PASSWORD},
    )
    assert registered.status_code == 201
    activated = client.put("/v1/users/activate", json={"token": registered.json()["token"]})
    assert activated.status_code == 200


def _login(client: TestClient, *, username: str, password: str = PASSWORD) -> dict[str, Any]:
    response = client.post(
        "/v1/users/authenticate",
        json={"username": username, "password": password},
    )
    assert response.status_code == 201
    return response.json()


def test_health_reports_available(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "http_health.db")

    with _build_client(async_url, RecordingNotifier()) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "available"}


def test_register_returns_activation_token_and_mails_it(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "http_register.db")
    notifier = RecordingNotifier()

    with _build_client(async_url, notifier) as client:
        response = client.post(
            "/v1/users/new",
            json={"username": "alice", "email": "Alice@Example.com", "password": PASSWORD},
        )
        duplicate = client.post(
            "/v1/users/new",
            json={"username": "alice", "email": "alice2@example.com", "password": PASSWORD},
        )
        invalid = client.post(
            "/v1/users/new",
            json={"username": "al", "email": "nope", "password": "weak"},
        )
        unknown_field = client.post(
            "/v1/users/new",
            json={
                "username": "carol",
                "email": "carol@example.com",
                "password": PASSWORD,
                "admin": True,
            },
        )

    assert response.status_code == 201
    token = response.json()["token"]
    assert len(token) == 26
    assert notifier.sent == [("alice@example.com", "activation", {"activation_token": token})]
    assert duplicate.status_code == 422
    assert duplicate.json() == {"detail": {"username": "a user with this username already exists"}}
    assert invalid.status_code == 422
    assert set(invalid.json()["detail"]) == {"username", "email", "password"}
    assert unknown_field.status_code == 422

    engine = sa.create_engine(sync_url)
    with engine.begin() as connection:
        count = connection.execute(sa.text("SELECT COUNT(*) FROM users")).scalar_one()
    assert count == 1


def test_activation_login_and_account_read(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "http_account.db")

    with _build_client(async_url, RecordingNotifier()) as client:
        _register_and_activate(client, username="alice", email="alice@example.com")
        _register_and_activate(client, username="bob", email="bob@example.com")
        session = _login(client, username="alice")
        access = session["access_token"]["token"]

        own = client.get("/v1/users/account/alice", headers=_bearer(access))
        other = client.get("/v1/users/account/bob", headers=_bearer(access))
        anonymous = client.get("/v1/users/account/alice")
        malformed = client.get("/v1/users/account/alice", headers={"Authorization": "Token x"})
        unknown = client.get(
            "/v1/users/account/alice",
            headers=_bearer("ABCDEFGHIJKLMNOPQRSTUVWXYZ"),
        )
        bad_login = client.post(
            "/v1/users/authenticate",
            json={"username": "alice", "password": "Wr0ngPass!"},
        )

    assert own.status_code == 200
    assert own.json()["user"] == {
        "id": own.json()["user"]["id"],
        "username": "alice",
        "email": "alice@example.com",
        "activated": True,
    }
    assert other.status_code == 403
    for response in (anonymous, malformed, unknown):
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
    assert bad_login.status_code == 401
    assert bad_login.json() == {"detail": "invalid authentication credentials"}
    assert set(session) == {"access_token", "refresh_token"}
    assert set(session["refresh_token"]) == {"token", "expiry"}


def test_consumed_activation_token_reads_as_invalid_token(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "http_activation_replay.db")

    with _build_client(async_url, RecordingNotifier()) as client:
        registered = client.post(
            "/v1/users/new",
            json={"username": "alice", "email": "alice@example.com", "password": PASSWORD},
        )
        token = registered.json()["token"]
        first = client.put("/v1/users/activate", json={"token": token})
        second = client.put("/v1/users/activate", json={"token": token})
        unknown = client.put(
            "/v1/users/activate",
            json={"token": "ABCDEFGHIJKLMNOPQRSTUVWXYZ"},
        )

    assert first.status_code == 200
    for response in (second, unknown):
        assert response.status_code == 401
        assert response.json() == {"detail": "invalid or expired token"}


def test_refresh_rotates_and_logout_revokes(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "http_tokens.db")

    with _build_client(async_url, RecordingNotifier()) as client:
        _register_and_activate(client, username="alice", email="alice@example.com")
        session = _login(client, username="alice")

        refreshed = client.post(
            "/v1/tokens/refresh",
            json={"token": session["refresh_token"]["token"]},
        )
        replay = client.post(
            "/v1/tokens/refresh",
            json={"token": session["refresh_token"]["token"]},
        )
        old_access = client.get(
            "/v1/users/account/alice",
            headers=_bearer(session["access_token"]["token"]),
        )
        new_access = refreshed.json()["access_token"]["token"]
        logout = client.delete("/v1/tokens", headers=_bearer(new_access))
        after_logout = client.get("/v1/users/account/alice", headers=_bearer(new_access))
        anonymous_logout = client.delete("/v1/tokens")

    assert refreshed.status_code == 201
    assert replay.status_code == 401
    assert replay.json() == {"detail": "invalid or expired token"}
    assert old_access.status_code == 401
    assert logout.status_code == 204
    assert after_logout.status_code == 401
    assert anonymous_logout.status_code == 401


def test_password_reset_flow_delivers_token_out_of_band(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "http_reset.db")
    notifier = RecordingNotifier()

    with _build_client(async_url, notifier) as client:
        _register_and_activate(client, username="alice", email="alice@example.com")
        requested = client.post("/v1/users/password/reset", json={"email": "alice@example.com"})
        unknown = client.post("/v1/users/password/reset", json={"email": "ghost@example.com"})

    # Mail is delivered in the background; shutdown drains it.
    assert notifier.sent[-1][1] == "password_reset"
    reset_token = notifier.sent[-1][2]["reset_token"]

    with _build_client(async_url, notifier) as client:
        updated = client.put(
            "/v1/users/password/update",
            json={"token": reset_token, "password": "N3wPassword?"},
        )
        _login(client, username="alice", password="N3wPassword?")
        replayed = client.put(
            "/v1/users/password/update",
            json={"token": reset_token, "password": "An0therPass!"},
        )

    assert requested.status_code == 202
    assert "token" not in requested.json()
    assert unknown.status_code == 401
    assert updated.status_code == 200
    assert replayed.status_code == 401
    assert replayed.json() == {"detail": "invalid or expired token"}


def test_email_update_deactivates_account(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "http_update.db")
    notifier = RecordingNotifier()

    with _build_client(async_url, notifier) as client:
        _register_and_activate(client, username="alice", email="alice@example.com")
        access = _login(client, username="alice")["access_token"]["token"]

        empty = client.put("/v1/users/account/alice/update", json={}, headers=_bearer(access))
        updated = client.put(
            "/v1/users/account/alice/update",
            json={"email": "new@example.com"},
            headers=_bearer(access),
        )
        after = client.get("/v1/users/account/alice", headers=_bearer(access))

    assert empty.status_code == 422
    assert empty.json() == {"detail": {"account": "email or password must be provided"}}
    assert updated.status_code == 200
    assert updated.json()["user"]["email"] == "new@example.com"
    assert updated.json()["user"]["activated"] is False
    assert after.status_code == 403
    assert notifier.sent[-1][:2] == ("new@example.com", "activation")


def test_oversized_body_is_rejected(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "http_oversize.db")

    with _build_client(async_url, RecordingNotifier()) as client:
        response = client.post(
            "/v1/users/new",
            content=b"{" + b" " * 1_048_576 + b"}",
            headers={"content-type": "application/json"},
        )

    assert response.status_code == 413


def test_chunked_body_over_limit_is_rejected(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "http_chunked.db")

    def chunks() -> Iterator[bytes]:
        yield b"{"
        yield b" " * 1_048_576
        yield b" " * 1_048_576
        yield b'"extra": true}'

    with _build_client(async_url, RecordingNotifier()) as client:
        response = client.post(
            "/v1/users/new",
            content=chunks(),
            headers={"content-type": "application/json"},
        )

    assert response.status_code == 413
    assert response.json() == {"detail": "request body must not be larger than 1048576 bytes"}
