# app/core/signing.py
import base64
import binascii
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from app.core.exceptions import ConfigurationError, InvalidSignatureError, InvalidTokenError, TokenExpiredError
from app.core.utils import parse_duration

SIGNATURE_PREFIX = "file"


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode("ascii"))


@dataclass(frozen=True)
class SignedUrlPayload:
    file_id: str
    expires_at: int  # epoch milliseconds


class URLSigner:
    """Stateless, time-limited download tokens for a single file id.

    Token layout: ``b64url(json) + "." + b64url(hmac_sha256("file:" + b64url(json)))``.
    """

    def __init__(
        self,
        secret_key: str,
        default_expiry_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self.secret_key = (secret_key or "").encode("utf-8")
        self.default_expiry_seconds = default_expiry_seconds
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _signature(self, payload_part: str) -> str:
        if not self.secret_key:
            raise ConfigurationError("Signed URL secret is not configured")
        message = f"{SIGNATURE_PREFIX}:{payload_part}".encode("utf-8")
        return _b64url_encode(hmac.new(self.secret_key, message, hashlib.sha256).digest())

    @staticmethod
    def _expiry_ms(expires_in: Union[int, float, str]) -> int:
        if isinstance(expires_in, str):
            return int(parse_duration(expires_in).total_seconds() * 1000)
        return int(expires_in * 1000)

    def generate_signed_token(self, file_id: str, expires_in: Optional[Union[int, float, str]] = None) -> str:
        if expires_in is None:
            expires_in = self.default_expiry_seconds
        payload = {"fileId": file_id, "expiresAt": self._now_ms() + self._expiry_ms(expires_in)}
        payload_part = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        return f"{payload_part}.{self._signature(payload_part)}"

    def verify_signed_token(self, token: str) -> SignedUrlPayload:
        payload_part, sep, signature_part = (token or "").partition(".")
        if not sep or not payload_part or not signature_part:
            raise InvalidTokenError()

        expected = self._signature(payload_part)
        if not hmac.compare_digest(expected.encode("ascii"), signature_part.encode("utf-8")):
            raise InvalidSignatureError()

        try:
            data = json.loads(_b64url_decode(payload_part).decode("utf-8"))
            payload = SignedUrlPayload(file_id=str(data["fileId"]), expires_at=int(data["expiresAt"]))
        except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError) as exc:
            raise InvalidTokenError() from exc

        if self._now_ms() > payload.expires_at:
            raise TokenExpiredError()
        return payload
