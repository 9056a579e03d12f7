from __future__ import annotations

from pathlib import Path

import pytest

from app.core.config import load_settings
from app.core.exceptions import ConfigurationError

from conftest import ACCESS_SECRET, REFRESH_SECRET, SIGNED_URL_SECRET, make_settings


def test_defaults(tmp_path: Path) -> None:
    settings = make_settings(tmp_path)

    assert settings.security.JWT_ACCESS_EXPIRES_IN == "15m"
    assert settings.security.JWT_REFRESH_EXPIRES_IN == "7d"
    assert settings.storage.SIGNED_URL_EXPIRY == 3600
    assert settings.storage.MAX_IMAGE_SIZE == 10 * 1024 * 1024
    assert settings.storage.temp_dir == str(tmp_path / "uploads" / "temp")
    assert settings.db.is_sqlite
    assert not settings.smtp.is_configured


def test_settings_are_frozen(tmp_path: Path) -> None:
    settings = make_settings(tmp_path)

    with pytest.raises(Exception):
        settings.debug = True


def test_missing_jwt_secrets(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SECURITY__JWT_ACCESS_SECRET", raising=False)
    monkeypatch.delenv("SECURITY__JWT_REFRESH_SECRET", raising=False)

    with pytest.raises(ConfigurationError):
        load_settings(storage={"UPLOAD_DIR": str(tmp_path), "SIGNED_URL_SECRET": SIGNED_URL_SECRET})


def test_blank_signed_url_secret(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        make_settings(tmp_path, storage={"UPLOAD_DIR": str(tmp_path), "SIGNED_URL_SECRET": "  "})


def test_access_and_refresh_secrets_must_differ(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        make_settings(tmp_path, security={"JWT_ACCESS_SECRET": ACCESS_SECRET, "JWT_REFRESH_SECRET": ACCESS_SECRET})


@pytest.mark.parametrize("duration", ["soon", "0", "-5m"])
def test_bad_token_durations_fail_at_load(tmp_path: Path, duration: str) -> None:
    with pytest.raises(ConfigurationError):
        make_settings(
            tmp_path,
            security={
                "JWT_ACCESS_SECRET": ACCESS_SECRET,
                "JWT_REFRESH_SECRET": REFRESH_SECRET,
                "JWT_ACCESS_EXPIRES_IN": duration,
            },
        )


def test_nested_values_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SECURITY__JWT_ACCESS_SECRET", "env-access")
    monkeypatch.setenv("SECURITY__JWT_REFRESH_SECRET", "env-refresh")
    monkeypatch.setenv("SECURITY__JWT_ACCESS_EXPIRES_IN", "5m")
    monkeypatch.setenv("STORAGE__SIGNED_URL_SECRET", "env-signing")
    monkeypatch.setenv("STORAGE__UPLOAD_DIR", str(tmp_path))

    settings = load_settings()

    assert settings.security.JWT_ACCESS_SECRET.get_secret_value() == "env-access"
    assert settings.security.JWT_ACCESS_EXPIRES_IN == "5m"
    assert settings.storage.UPLOAD_DIR == str(tmp_path)
