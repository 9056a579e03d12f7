# app/core/config.py
import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.exceptions import ConfigurationError
from app.core.utils import parse_duration

MB = 1024 * 1024


class DataBaseConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    DB_URL: Optional[str] = Field(None, description="Full database URL, overrides the parts below")
    DB_HOST: str = Field("localhost", description="Database host")
    DB_PORT: int = Field(5432, description="Database port")
    DB_NAME: str = Field("lms", description="Database name")
    DB_USER: str = Field("lms", description="Database user")
    DB_PASSWORD: SecretStr = Field(SecretStr(""), description="Database password")
    DB_ECHO: bool = Field(False, description="Enable SQL echo")
    DB_POOL_SIZE: int = Field(5, description="Database pool size")
    DB_MAX_OVERFLOW: int = Field(10, description="Database max overflow")

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD.get_secret_value()}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


class StorageConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    UPLOAD_DIR: str = Field("/var/www/uploads", description="Root directory for uploaded files")
    MAX_FILE_SIZE: int = Field(500 * MB, description="Size limit for OTHER files")
    MAX_VIDEO_SIZE: int = Field(2 * 1024 * MB, description="Size limit for videos")
    MAX_IMAGE_SIZE: int = Field(10 * MB, description="Size limit for images")
    MAX_DOCUMENT_SIZE: int = Field(50 * MB, description="Size limit for documents")
    SIGNED_URL_SECRET: SecretStr = Field(..., description="HMAC secret for signed download links")
    SIGNED_URL_EXPIRY: int = Field(3600, description="Default signed link lifetime in seconds", gt=0)
    CHUNK_SIZE: int = Field(MB, description="Default byte-range chunk for video streaming", gt=0)
    TEMP_MAX_AGE_HOURS: int = Field(24, description="Age after which temp and orphaned files are removed")
    MAX_FILES_PER_REQUEST: int = Field(10, description="Files a multi-upload body is sized for", gt=0)

    @field_validator("SIGNED_URL_SECRET")
    @classmethod
    def secret_not_empty(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError("Signed URL secret is not configured")
        return v

    @property
    def video_dir(self) -> str:
        return os.path.join(self.UPLOAD_DIR, "videos")

    @property
    def image_dir(self) -> str:
        return os.path.join(self.UPLOAD_DIR, "images")

    @property
    def document_dir(self) -> str:
        return os.path.join(self.UPLOAD_DIR, "documents")

    @property
    def temp_dir(self) -> str:
        return os.path.join(self.UPLOAD_DIR, "temp")

    @property
    def hls_dir(self) -> str:
        return os.path.join(self.UPLOAD_DIR, "hls")


class SecurityConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    JWT_ACCESS_SECRET: SecretStr = Field(..., description="Secret for access tokens")
    JWT_REFRESH_SECRET: SecretStr = Field(..., description="Secret for refresh tokens")
    JWT_ALGORITHM: str = Field("HS256", description="JWT algorithm")
    JWT_ACCESS_EXPIRES_IN: str = Field("15m", description="Access token lifetime, e.g. 15m")
    JWT_REFRESH_EXPIRES_IN: str = Field("7d", description="Refresh token lifetime, e.g. 7d")
    EMAIL_VERIFICATION_TOKEN_HOURS: int = Field(24, gt=0)
    PASSWORD_RESET_TOKEN_HOURS: int = Field(1, gt=0)
    SESSION_SECRET: Optional[SecretStr] = Field(None, description="Admin panel session secret")

    @field_validator("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET")
    @classmethod
    def secret_not_empty(cls, v: SecretStr, info) -> SecretStr:
        if not v.get_secret_value().strip():
            raise ValueError(f"{info.field_name} is not configured")
        return v

    @field_validator("JWT_ACCESS_EXPIRES_IN", "JWT_REFRESH_EXPIRES_IN")
    @classmethod
    def duration_parses(cls, v: str) -> str:
        if parse_duration(v).total_seconds() <= 0:
            raise ValueError(f"Duration must be positive: {v!r}")
        return v

    @model_validator(mode="after")
    def secrets_are_distinct(self) -> "SecurityConfig":
        if self.JWT_ACCESS_SECRET.get_secret_value() == self.JWT_REFRESH_SECRET.get_secret_value():
            raise ValueError("Access and refresh tokens must use different secrets")
        return self

    @property
    def session_secret(self) -> str:
        if self.SESSION_SECRET is not None:
            return self.SESSION_SECRET.get_secret_value()
        return self.JWT_ACCESS_SECRET.get_secret_value()


class SMTPConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    HOST: Optional[str] = None
    PORT: int = 587
    USER: Optional[str] = None
    PASSWORD: Optional[SecretStr] = None
    SECURE: bool = False
    FROM_EMAIL: str = "no-reply@localhost"
    FROM_NAME: str = "Course Platform"

    @property
    def is_configured(self) -> bool:
        return bool(self.HOST and self.USER and self.PASSWORD)


class Settings(BaseSettings):
    app_name: str = Field("Course Platform", description="Application name")
    app_url: str = Field("http://localhost:3000", description="Frontend URL used in email links")
    debug: bool = Field(False, description="Debug mode")
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="CORS origins"
    )
    rate_limit_enabled: bool = Field(True, description="Enable slowapi rate limits")
    create_tables: bool = Field(False, description="Create tables on startup instead of relying on alembic")
    admin_enabled: bool = Field(True, description="Mount the sqladmin panel")

    db: DataBaseConfig = Field(default_factory=DataBaseConfig)
    storage: StorageConfig
    security: SecurityConfig
    smtp: SMTPConfig = Field(default_factory=SMTPConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        frozen=True,
    )


def load_settings(**overrides) -> Settings:
    """Build settings, turning validation failures into ConfigurationError."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance"""
    return load_settings()
