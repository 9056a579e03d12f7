# app/core/security.py
import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import bcrypt
from jose import JWTError, jwt
from pydantic import SecretStr

from app.core.config import SecurityConfig
from app.core.exceptions import ConfigurationError, TokenError
from app.core.utils import parse_duration


def get_password_hash(password: str) -> str:
    """Hash a password with bcrypt"""
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against its bcrypt hash"""
    try:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


def hash_token(token: str) -> str:
    """One-way hash used to store refresh and one-shot tokens"""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


@dataclass(frozen=True)
class TimedToken:
    token: str
    token_hash: str
    expires_at: datetime


def create_timed_token(hours: int, now: Optional[datetime] = None) -> TimedToken:
    """Random one-shot token for email verification and password reset.

    Only ``token_hash`` should be persisted; ``token`` goes to the user.
    """
    token = secrets.token_hex(32)
    issued_at = now or datetime.now(timezone.utc)
    return TimedToken(
        token=token,
        token_hash=hash_token(token),
        expires_at=issued_at + timedelta(hours=hours),
    )


class TokenService:
    """Issues and verifies JWT access and refresh tokens.

    Access and refresh tokens are signed with different secrets so a leaked
    key for one kind cannot mint the other.
    """

    def __init__(self, config: SecurityConfig, clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.config = config
        self.access_ttl = parse_duration(config.JWT_ACCESS_EXPIRES_IN)
        self.refresh_ttl = parse_duration(config.JWT_REFRESH_EXPIRES_IN)
        self._clock = clock

    @staticmethod
    def _secret(value: Optional[SecretStr], name: str) -> str:
        secret = value.get_secret_value() if value is not None else ""
        if not secret:
            raise ConfigurationError(f"JWT {name} secret is not configured")
        return secret

    @property
    def access_token_expires_in(self) -> int:
        """Access token lifetime in seconds"""
        return int(self.access_ttl.total_seconds())

    def refresh_token_expiry_date(self) -> datetime:
        return self._clock() + self.refresh_ttl

    def generate_access_token(self, user_id: Any, email: str, role: str) -> str:
        """Create a JWT access token"""
        secret = self._secret(self.config.JWT_ACCESS_SECRET, "access")
        now = self._clock()
        to_encode = {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "type": "access",
            "iat": now,
            "exp": now + self.access_ttl,
        }
        return jwt.encode(to_encode, secret, algorithm=self.config.JWT_ALGORITHM)

    def generate_refresh_token(self, user_id: Any, token_id: str) -> str:
        """Create a JWT refresh token bound to a persisted token id"""
        secret = self._secret(self.config.JWT_REFRESH_SECRET, "refresh")
        now = self._clock()
        to_encode = {
            "sub": str(user_id),
            "type": "refresh",
            "jti": token_id,
            "iat": now,
            "exp": now + self.refresh_ttl,
        }
        return jwt.encode(to_encode, secret, algorithm=self.config.JWT_ALGORITHM)

    def _decode(self, token: str, secret: str, expected_type: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, secret, algorithms=[self.config.JWT_ALGORITHM])
        except JWTError as exc:
            raise TokenError() from exc

        if payload.get("type") != expected_type or not payload.get("sub"):
            raise TokenError()
        return payload

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        secret = self._secret(self.config.JWT_ACCESS_SECRET, "access")
        return self._decode(token, secret, "access")

    def verify_refresh_token(self, token: str) -> Dict[str, Any]:
        secret = self._secret(self.config.JWT_REFRESH_SECRET, "refresh")
        payload = self._decode(token, secret, "refresh")
        if not payload.get("jti"):
            raise TokenError()
        return payload
