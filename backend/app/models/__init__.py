# app/models/__init__.py
from .base import Base
from .user import User, UserRole
from .auth import RefreshToken
from .media import File, FileCategory, FileVisibility
from .system import AuditLog

__all__ = [
    "Base",
    "User", "UserRole",
    "RefreshToken",
    "File", "FileCategory", "FileVisibility",
    "AuditLog",
]
