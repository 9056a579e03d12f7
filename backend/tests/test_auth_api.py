from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy import select

from app.models.auth import RefreshToken

from conftest import PASSWORD, RecordingMailer, auth_headers, register


def _login(client: TestClient, email: str, password: str = PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


async def _refresh_rows(db) -> list[RefreshToken]:
    async with db.session_factory() as session:
        result = await session.execute(select(RefreshToken))
        return list(result.scalars().all())


def test_root_and_health(client: TestClient) -> None:
    assert client.get("/").status_code == 200
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["database"] == "connected"


def test_unknown_route_uses_error_body(client: TestClient) -> None:
    response = client.get("/api/v1/nothing-here")

    assert response.status_code == 404
    body = response.json()
    assert body["error"] == "NotFoundError"
    assert set(body) >= {"detail", "error", "timestamp"}


def test_register_returns_user_and_session(client: TestClient, mailer: RecordingMailer) -> None:
    body = register(client, email="New.User@Example.com")

    assert body["user"]["email"] == "new.user@example.com"
    assert body["user"]["role"] == "STUDENT"
    assert body["user"]["is_email_verified"] is False
    assert body["tokens"]["token_type"] == "Bearer"
    assert body["tokens"]["access_token_expires_in"] == 900
    assert len(mailer.verification["new.user@example.com"]) == 64


def test_register_rejects_duplicates_and_weak_passwords(client: TestClient) -> None:
    register(client)

    duplicate = client.post(
        "/api/v1/auth/register", json={"email": "student@example.com", "password": PASSWORD}
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "ConflictError"

    weak = client.post("/api/v1/auth/register", json={"email": "weak@example.com", "password": "password"})
    assert weak.status_code == 422


def test_login_and_me(client: TestClient) -> None:
    register(client)

    response = _login(client, "student@example.com")
    assert response.status_code == 200
    body = response.json()
    assert body["user"]["last_login_at"] is not None

    me = client.get("/api/v1/auth/me", headers=auth_headers(body))
    assert me.status_code == 200
    assert me.json()["email"] == "student@example.com"


def test_login_failures(client: TestClient) -> None:
    register(client)

    wrong = _login(client, "student@example.com", "Wr0ngPassword")
    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Invalid email or password"
    assert wrong.json()["error"] == "AuthenticationError"

    unknown = _login(client, "ghost@example.com")
    assert unknown.status_code == 401


def test_me_requires_valid_access_token(client: TestClient) -> None:
    body = register(client)

    assert client.get("/api/v1/auth/me").status_code == 401
    garbage = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nope"})
    assert garbage.status_code == 401
    refresh_as_access = client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {body['tokens']['refresh_token']}"}
    )
    assert refresh_as_access.status_code == 401


def test_refresh_rotates_tokens(client: TestClient) -> None:
    first = register(client)["tokens"]["refresh_token"]

    rotated = client.post("/api/v1/auth/refresh", json={"refresh_token": first})
    assert rotated.status_code == 200
    second = rotated.json()["tokens"]["refresh_token"]
    assert second != first

    rows = client.portal.call(_refresh_rows, client.app.state.db)
    assert len(rows) == 2
    old = next(r for r in rows if r.replaced_by_token_id)
    new = next(r for r in rows if r.id == old.replaced_by_token_id)
    assert old.revoked_at is not None
    assert old.replaced_by_token_id == new.id
    assert new.revoked_at is None

    reused = client.post("/api/v1/auth/refresh", json={"refresh_token": first})
    assert reused.status_code == 401

    assert client.post("/api/v1/auth/refresh", json={"refresh_token": second}).status_code == 200


def test_refresh_rejects_access_tokens(client: TestClient) -> None:
    access = register(client)["tokens"]["access_token"]

    assert client.post("/api/v1/auth/refresh", json={"refresh_token": access}).status_code == 401


def test_logout_revokes_refresh_token(client: TestClient) -> None:
    refresh = register(client)["tokens"]["refresh_token"]

    response = client.post("/api/v1/auth/logout", json={"refresh_token": refresh})
    assert response.status_code == 200

    assert client.post("/api/v1/auth/refresh", json={"refresh_token": refresh}).status_code == 401


def test_verify_email(client: TestClient, mailer: RecordingMailer) -> None:
    register(client)
    token = mailer.verification["student@example.com"]

    verified = client.post("/api/v1/auth/verify-email", json={"token": token})
    assert verified.status_code == 200
    assert verified.json()["user"]["is_email_verified"] is True

    reused = client.post("/api/v1/auth/verify-email", json={"token": token})
    assert reused.status_code == 400

    assert client.post("/api/v1/auth/verify-email", json={"token": "0" * 64}).status_code == 400


def test_password_reset_flow(client: TestClient, mailer: RecordingMailer) -> None:
    register(client)

    unknown = client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})
    assert unknown.status_code == 200
    assert "ghost@example.com" not in mailer.reset

    known = client.post("/api/v1/auth/forgot-password", json={"email": "student@example.com", "language": "vi"})
    assert known.status_code == 200
    assert known.json()["message"] == unknown.json()["message"]
    token = mailer.reset["student@example.com"]

    reset = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "N3wPassword"})
    assert reset.status_code == 200

    assert _login(client, "student@example.com").status_code == 401
    assert _login(client, "student@example.com", "N3wPassword").status_code == 200

    reused = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "An0therOne"})
    assert reused.status_code == 400


def test_admin_login_page_is_mounted(client: TestClient) -> None:
    response = client.get("/admin/login")

    assert response.status_code == 200
