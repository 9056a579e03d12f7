# app/core/exceptions.py
from datetime import datetime, timezone

from fastapi import status


def error_body(detail, error: str) -> dict:
    """JSON body shared by every error response"""
    return {"detail": detail, "error": error, "timestamp": datetime.now(timezone.utc).isoformat()}


class ConfigurationError(RuntimeError):
    """Missing or invalid deployment configuration. Fatal, never returned to clients."""


class AppException(Exception):
    """Base application exception"""
    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail

class AuthenticationError(AppException):
    """Authentication failed"""
    def __init__(self, detail: str = "Authentication failed"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, detail)

class AuthorizationError(AppException):
    """Caller is not allowed to do this"""
    def __init__(self, detail: str = "Not authorized"):
        super().__init__(status.HTTP_403_FORBIDDEN, detail)

class ValidationError(AppException):
    """Invalid request data"""
    def __init__(self, detail: str = "Validation error", status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(status_code, detail)

class FileValidationError(ValidationError):
    """Uploaded file rejected by extension, MIME or size policy"""
    def __init__(self, detail: str = "File validation failed"):
        super().__init__(detail, status.HTTP_400_BAD_REQUEST)

class NoFileProvidedError(ValidationError):
    def __init__(self, detail: str = "No file provided"):
        super().__init__(detail, status.HTTP_400_BAD_REQUEST)

class PayloadTooLargeError(AppException):
    def __init__(self, detail: str = "Payload too large"):
        super().__init__(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail)

class NotFoundError(AppException):
    """Resource not found"""
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, detail)

class ConflictError(AppException):
    def __init__(self, detail: str = "Resource already exists"):
        super().__init__(status.HTTP_409_CONFLICT, detail)

class DatabaseError(AppException):
    """Database failure"""
    def __init__(self, detail: str = "Database error"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, detail)

class RateLimitError(AppException):
    """Too many requests"""
    def __init__(self, detail: str = "Too many requests"):
        super().__init__(status.HTTP_429_TOO_MANY_REQUESTS, detail)

class ServiceUnavailableError(AppException):
    def __init__(self, detail: str = "Service unavailable"):
        super().__init__(status.HTTP_503_SERVICE_UNAVAILABLE, detail)


class TokenError(AuthenticationError):
    """Token could not be verified. Access/refresh tokens never say why."""
    def __init__(self, detail: str = "Invalid or expired token"):
        super().__init__(detail)

class InvalidTokenError(TokenError):
    def __init__(self, detail: str = "Invalid signed token"):
        super().__init__(detail)

class InvalidSignatureError(TokenError):
    def __init__(self, detail: str = "Invalid signed token signature"):
        super().__init__(detail)
        self.status_code = status.HTTP_403_FORBIDDEN

class TokenExpiredError(TokenError):
    def __init__(self, detail: str = "Signed token has expired"):
        super().__init__(detail)
        self.status_code = status.HTTP_410_GONE
