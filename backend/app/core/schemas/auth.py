# app/core/schemas/auth.py
from pydantic import BaseModel, EmailStr, Field, ConfigDict, validator
from typing import Literal, Optional
from datetime import datetime

class PasswordComplexity:
    """Password strength rules"""
    MIN_LENGTH = 8
    MAX_LENGTH = 64
    REQUIRE_UPPERCASE = True
    REQUIRE_LOWERCASE = True
    REQUIRE_DIGIT = True

    @classmethod
    def validate(cls, password: str) -> None:
        errors = []

        if len(password) < cls.MIN_LENGTH:
            errors.append(f"Password must be at least {cls.MIN_LENGTH} characters long")
        if len(password) > cls.MAX_LENGTH:
            errors.append(f"Password must be at most {cls.MAX_LENGTH} characters long")

        if cls.REQUIRE_UPPERCASE and not any(c.isupper() for c in password):
            errors.append("Password must contain at least one uppercase letter")
        if cls.REQUIRE_LOWERCASE and not any(c.islower() for c in password):
            errors.append("Password must contain at least one lowercase letter")
        if cls.REQUIRE_DIGIT and not any(c.isdigit() for c in password):
            errors.append("Password must contain at least one digit")

        weak_passwords = [
            "password", "12345678", "qwerty123", "password1", "iloveyou", "1q2w3e4r"
        ]
        if password.lower() in weak_passwords:
            errors.append("Password is too common and easily guessable")

        if errors:
            raise ValueError("; ".join(errors))

Language = Literal["en", "vi"]

class UserCreate(BaseModel):
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., description="User password")
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    language: Optional[Language] = None

    model_config = ConfigDict(extra="forbid")

    @validator('email')
    def lowercase_email(cls, v):
        return v.strip().lower()

    @validator('password')
    def validate_password(cls, v):
        PasswordComplexity.validate(v)
        return v

class UserLogin(BaseModel):
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., description="User password", min_length=8, max_length=64)

    @validator('email')
    def lowercase_email(cls, v):
        return v.strip().lower()

class SessionTokens(BaseModel):
    token_type: str = "Bearer"
    access_token: str
    access_token_expires_in: int = Field(..., description="Access token lifetime in seconds")
    refresh_token: str
    refresh_token_expires_at: datetime

class UserResponse(BaseModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    is_active: bool
    is_email_verified: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class AuthResponse(BaseModel):
    user: UserResponse
    tokens: SessionTokens

class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1, description="Refresh token issued at login")

class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1)

class PasswordResetRequest(BaseModel):
    email: EmailStr
    language: Optional[Language] = None

    @validator('email')
    def lowercase_email(cls, v):
        return v.strip().lower()

class PasswordResetConfirm(BaseModel):
    token: str = Field(..., min_length=1)
    password: str

    @validator('password')
    def validate_password(cls, v):
        PasswordComplexity.validate(v)
        return v

class MessageResponse(BaseModel):
    message: str
    user: Optional[UserResponse] = None
