from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from pydantic import SecretStr

from app.core.config import SecurityConfig
from app.core.exceptions import ConfigurationError, TokenError
from app.core.security import (
    TokenService,
    create_timed_token,
    get_password_hash,
    hash_token,
    verify_password,
)
from app.core.utils import parse_duration

from conftest import ACCESS_SECRET, REFRESH_SECRET


def _config(**overrides) -> SecurityConfig:
    values = {"JWT_ACCESS_SECRET": ACCESS_SECRET, "JWT_REFRESH_SECRET": REFRESH_SECRET}
    values.update(overrides)
    return SecurityConfig(**values)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("15m", timedelta(minutes=15)),
        ("7d", timedelta(days=7)),
        ("2 hours", timedelta(hours=2)),
        ("1.5h", timedelta(minutes=90)),
        ("30s", timedelta(seconds=30)),
        ("250ms", timedelta(milliseconds=250)),
        ("1w", timedelta(weeks=1)),
        ("1y", timedelta(days=365.25)),
        ("500", timedelta(milliseconds=500)),
        ("10 Minutes", timedelta(minutes=10)),
    ],
)
def test_parse_duration(value: str, expected: timedelta) -> None:
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["", "abc", "15 parsecs", "m15", "1h30m"])
def test_parse_duration_rejects_garbage(value: str) -> None:
    with pytest.raises(ValueError):
        parse_duration(value)


def test_access_token_claims() -> None:
    service = TokenService(_config())

    token = service.generate_access_token(7, "a@example.com", "STUDENT")
    payload = service.verify_access_token(token)

    assert payload["sub"] == "7"
    assert payload["email"] == "a@example.com"
    assert payload["role"] == "STUDENT"
    assert payload["type"] == "access"
    assert payload["exp"] - payload["iat"] == 15 * 60


def test_refresh_token_claims_and_lifetime() -> None:
    service = TokenService(_config(JWT_REFRESH_EXPIRES_IN="2d"))

    token = service.generate_refresh_token(7, "jti-1")
    payload = service.verify_refresh_token(token)

    assert payload["jti"] == "jti-1"
    assert payload["type"] == "refresh"
    assert payload["exp"] - payload["iat"] == 2 * 24 * 3600


def test_access_and_refresh_tokens_are_not_interchangeable() -> None:
    service = TokenService(_config())

    access = service.generate_access_token(1, "a@example.com", "STUDENT")
    refresh = service.generate_refresh_token(1, "jti-1")

    with pytest.raises(TokenError):
        service.verify_refresh_token(access)
    with pytest.raises(TokenError):
        service.verify_access_token(refresh)


def test_wrong_type_claim_signed_with_right_secret_is_rejected() -> None:
    service = TokenService(_config())
    token = jwt.encode({"sub": "1", "type": "refresh", "jti": "x"}, ACCESS_SECRET, algorithm="HS256")

    with pytest.raises(TokenError):
        service.verify_access_token(token)


def test_expired_access_token_is_rejected() -> None:
    issued = datetime.now(timezone.utc) - timedelta(hours=1)
    service = TokenService(_config(), clock=lambda: issued)

    token = service.generate_access_token(1, "a@example.com", "STUDENT")

    with pytest.raises(TokenError) as exc_info:
        service.verify_access_token(token)
    assert exc_info.value.detail == "Invalid or expired token"
    assert exc_info.value.status_code == 401


def test_garbage_token_is_rejected() -> None:
    with pytest.raises(TokenError):
        TokenService(_config()).verify_access_token("not-a-jwt")


def test_expiry_helpers() -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    service = TokenService(_config(JWT_ACCESS_EXPIRES_IN="30m"), clock=lambda: now)

    assert service.access_token_expires_in == 1800
    assert service.refresh_token_expiry_date() == now + timedelta(days=7)


def test_missing_secret_is_a_configuration_error() -> None:
    config = SecurityConfig.model_construct(
        JWT_ACCESS_SECRET=SecretStr(""),
        JWT_REFRESH_SECRET=SecretStr(REFRESH_SECRET),
        JWT_ALGORITHM="HS256",
        JWT_ACCESS_EXPIRES_IN="15m",
        JWT_REFRESH_EXPIRES_IN="7d",
    )
    service = TokenService(config)

    with pytest.raises(ConfigurationError):
        service.generate_access_token(1, "a@example.com", "STUDENT")
    assert service.generate_refresh_token(1, "jti")


def test_timed_token() -> None:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)

    timed = create_timed_token(24, now=now)

    assert len(timed.token) == 64
    int(timed.token, 16)
    assert timed.token_hash == hash_token(timed.token)
    assert timed.expires_at == now + timedelta(hours=24)
    assert create_timed_token(1).token != create_timed_token(1).token


def test_password_hashing() -> None:
    hashed = get_password_hash("Sup3rSecret")

    assert hashed != "Sup3rSecret"
    assert verify_password("Sup3rSecret", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("Sup3rSecret", "not-a-bcrypt-hash")
