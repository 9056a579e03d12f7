from __future__ import annotations

import asyncio
import logging

import pytest

from app.core.config import SMTPConfig
from app.services.mailer import (
    RESET_COPY,
    VERIFICATION_COPY,
    Mailer,
    build_action_url,
    build_email,
)


def test_build_action_url_escapes_token() -> None:
    assert build_action_url("https://lms.example/", "/verify-email", "a b") == (
        "https://lms.example/verify-email?token=a%20b"
    )
    assert build_action_url("https://lms.example/app?x=1", "", "t") == "https://lms.example/app?x=1&token=t"


def test_build_email_in_vietnamese() -> None:
    content = build_email(
        VERIFICATION_COPY["vi"], app_name="LMS", action_url="https://x/verify?token=t", first_name="An"
    )

    assert content.subject == "Xác minh email của bạn"
    assert "Xin chào An," in content.text
    assert "https://x/verify?token=t" in content.html


def test_build_email_escapes_html() -> None:
    content = build_email(RESET_COPY["en"], app_name="LMS", action_url="https://x/?a=1&b=2", first_name="<b>")

    assert "&lt;b&gt;" in content.html
    assert "https://x/?a=1&amp;b=2" in content.html


def test_unconfigured_mailer_only_logs(caplog: pytest.LogCaptureFixture) -> None:
    mailer = Mailer(SMTPConfig(), app_url="https://lms.example", app_name="LMS")

    with caplog.at_level(logging.INFO, logger="app.services.mailer"):
        asyncio.run(mailer.send_password_reset_email("user@example.com", "tok", language="fr"))

    assert "Email to user@example.com logged instead: Reset your password" in caplog.text
