from __future__ import annotations

import base64
import json

import pytest

from app.core.exceptions import (
    ConfigurationError,
    InvalidSignatureError,
    InvalidTokenError,
    TokenExpiredError,
)
from app.core.signing import URLSigner


class _Clock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _decode_part(part: str) -> bytes:
    return base64.urlsafe_b64decode(part + "=" * (-len(part) % 4))


def test_generate_and_verify_roundtrip() -> None:
    clock = _Clock(1_700_000_000.0)
    signer = URLSigner("secret", default_expiry_seconds=3600, clock=clock)

    token = signer.generate_signed_token("file-1")
    payload = signer.verify_signed_token(token)

    assert payload.file_id == "file-1"
    assert payload.expires_at == 1_700_000_000_000 + 3_600_000


def test_token_wire_format() -> None:
    signer = URLSigner("secret", clock=_Clock(1_700_000_000.0))

    token = signer.generate_signed_token("abc", expires_in=60)
    payload_part, signature_part = token.split(".")

    assert "=" not in token
    assert json.loads(_decode_part(payload_part)) == {"fileId": "abc", "expiresAt": 1_700_000_060_000}
    assert len(_decode_part(signature_part)) == 32


def test_expires_in_accepts_duration_strings() -> None:
    signer = URLSigner("secret", clock=_Clock(1_000.0))

    token = signer.generate_signed_token("abc", expires_in="2h")

    assert signer.verify_signed_token(token).expires_at == 1_000_000 + 2 * 3_600_000


def test_tampered_signature_is_rejected() -> None:
    signer = URLSigner("secret")
    payload_part, signature_part = signer.generate_signed_token("abc").split(".")
    forged = signature_part[:-1] + ("A" if signature_part[-1] != "A" else "B")

    with pytest.raises(InvalidSignatureError) as exc_info:
        signer.verify_signed_token(f"{payload_part}.{forged}")
    assert exc_info.value.status_code == 403


def test_token_for_another_secret_is_rejected() -> None:
    token = URLSigner("one").generate_signed_token("abc")

    with pytest.raises(InvalidSignatureError):
        URLSigner("two").verify_signed_token(token)


def test_swapped_payload_is_rejected() -> None:
    signer = URLSigner("secret")
    first = signer.generate_signed_token("first")
    second = signer.generate_signed_token("second")

    with pytest.raises(InvalidSignatureError):
        signer.verify_signed_token(f"{second.split('.')[0]}.{first.split('.')[1]}")


@pytest.mark.parametrize("token", ["", "no-separator", ".sig", "payload.", None])
def test_malformed_tokens(token: str | None) -> None:
    with pytest.raises(InvalidTokenError) as exc_info:
        URLSigner("secret").verify_signed_token(token)
    assert exc_info.value.status_code == 401


def test_undecodable_payload_with_valid_signature() -> None:
    signer = URLSigner("secret")
    payload_part = "bm90LWpzb24"  # "not-json"
    token = f"{payload_part}.{signer._signature(payload_part)}"

    with pytest.raises(InvalidTokenError):
        signer.verify_signed_token(token)


def test_expired_token() -> None:
    clock = _Clock(1_000.0)
    signer = URLSigner("secret", clock=clock)
    token = signer.generate_signed_token("abc", expires_in=10)

    clock.now = 1_010.0
    assert signer.verify_signed_token(token).file_id == "abc"

    clock.now = 1_010.5
    with pytest.raises(TokenExpiredError) as exc_info:
        signer.verify_signed_token(token)
    assert exc_info.value.status_code == 410


def test_verification_is_repeatable() -> None:
    signer = URLSigner("secret")
    token = signer.generate_signed_token("abc")

    assert signer.verify_signed_token(token) == signer.verify_signed_token(token)


def test_missing_secret_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        URLSigner("").generate_signed_token("abc")
