from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import update

from app.application import create_app
from app.core.config import Settings, StorageConfig, load_settings
from app.models.user import User

ACCESS_SECRET = "test-access-secret"
REFRESH_SECRET = "test-refresh-secret"
SIGNED_URL_SECRET = "test-signed-url-secret"
PASSWORD = "Sup3rSecret"


class RecordingMailer:
    """Stands in for the SMTP mailer and keeps every token it was asked to send."""

    def __init__(self) -> None:
        self.verification: dict[str, str] = {}
        self.reset: dict[str, str] = {}

    async def send_verification_email(self, to: str, token: str, first_name=None, language=None) -> None:
        self.verification[to] = token

    async def send_password_reset_email(self, to: str, token: str, first_name=None, language=None) -> None:
        self.reset[to] = token


def make_settings(tmp_path: Path, **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "rate_limit_enabled": False,
        "create_tables": True,
        "admin_enabled": True,
        "db": {"DB_URL": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"},
        "storage": {
            "UPLOAD_DIR": str(tmp_path / "uploads"),
            "SIGNED_URL_SECRET": SIGNED_URL_SECRET,
        },
        "security": {
            "JWT_ACCESS_SECRET": ACCESS_SECRET,
            "JWT_REFRESH_SECRET": REFRESH_SECRET,
        },
    }
    values.update(overrides)
    return load_settings(**values)


def make_storage_config(tmp_path: Path, **overrides: Any) -> StorageConfig:
    values: dict[str, Any] = {
        "UPLOAD_DIR": str(tmp_path / "uploads"),
        "SIGNED_URL_SECRET": SIGNED_URL_SECRET,
    }
    values.update(overrides)
    return StorageConfig(**values)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def client(settings: Settings, mailer: RecordingMailer):
    app = create_app(settings)
    app.state.mailer = mailer
    with TestClient(app) as test_client:
        yield test_client


def register(client: TestClient, email: str = "student@example.com", password: str = PASSWORD) -> dict[str, Any]:
    response = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": password, "first_name": "Test"},
    )
    assert response.status_code == 201, response.text
    return response.json()


def auth_headers(body: dict[str, Any]) -> dict[str, str]:
    return {"Authorization": f"Bearer {body['tokens']['access_token']}"}


async def _set_role(db, email: str, role: str) -> None:
    async with db.session_factory() as session:
        await session.execute(update(User).where(User.email == email).values(role=role))
        await session.commit()


def promote(client: TestClient, email: str, role: str = "ADMIN") -> None:
    client.portal.call(_set_role, client.app.state.db, email, role)
