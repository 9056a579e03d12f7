# app/services/file_validation.py
import os
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from app.core.config import StorageConfig
from app.models.media import FileCategory

ALLOWED_MIME_TYPES: Dict[FileCategory, Tuple[str, ...]] = {
    FileCategory.VIDEO: (
        "video/mp4",
        "video/mpeg",
        "video/quicktime",
        "video/x-msvideo",
        "video/x-ms-wmv",
        "video/webm",
    ),
    FileCategory.IMAGE: ("image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml"),
    FileCategory.DOCUMENT: (
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "text/plain",
        "text/csv",
    ),
    FileCategory.OTHER: (),
}

FILE_EXTENSIONS: Dict[FileCategory, Tuple[str, ...]] = {
    FileCategory.VIDEO: (".mp4", ".mpeg", ".mov", ".avi", ".wmv", ".webm"),
    FileCategory.IMAGE: (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg"),
    FileCategory.DOCUMENT: (".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".txt", ".csv"),
    FileCategory.OTHER: (),
}

# checked in this order; OTHER is the fallback
CLASSIFY_PRIORITY = (FileCategory.VIDEO, FileCategory.IMAGE, FileCategory.DOCUMENT)

PATH_HINTS = (
    ("/videos", FileCategory.VIDEO),
    ("/images", FileCategory.IMAGE),
    ("/documents", FileCategory.DOCUMENT),
)

MIME_PREFIX_HINTS = (
    ("video/", FileCategory.VIDEO),
    ("image/", FileCategory.IMAGE),
    ("application/", FileCategory.DOCUMENT),
)


@dataclass(frozen=True)
class FileValidationResult:
    valid: bool
    error: Optional[str] = None


VALID = FileValidationResult(valid=True)


def file_extension(filename: str) -> str:
    return os.path.splitext(os.path.basename(filename or ""))[1].lower()


def classify_file(mime_type: str, filename: Optional[str] = None) -> FileCategory:
    """Map a MIME type, then the filename extension, to a category."""
    for category in CLASSIFY_PRIORITY:
        if mime_type in ALLOWED_MIME_TYPES[category]:
            return category

    if filename:
        extension = file_extension(filename)
        for category in CLASSIFY_PRIORITY:
            if extension in FILE_EXTENSIONS[category]:
                return category

    return FileCategory.OTHER


def parse_category(value: Optional[str]) -> Optional[FileCategory]:
    if not value:
        return None
    try:
        return FileCategory(value.strip().upper())
    except ValueError:
        return None


def infer_category(explicit: Optional[str], path: str, mime_type: str) -> FileCategory:
    """Category for an upload attached to a request.

    An explicit category wins over the route, the route wins over the MIME type.
    """
    category = parse_category(explicit)
    if category is not None:
        return category

    for hint, category in PATH_HINTS:
        if hint in (path or ""):
            return category

    for prefix, category in MIME_PREFIX_HINTS:
        if (mime_type or "").startswith(prefix):
            return category

    return FileCategory.OTHER


def validate_file_extension(filename: str, category: FileCategory) -> FileValidationResult:
    category = FileCategory(category)
    extension = file_extension(filename)
    if not extension:
        return FileValidationResult(False, "File must have an extension")

    allowed = FILE_EXTENSIONS[category]
    if allowed and extension not in allowed:
        return FileValidationResult(
            False,
            f"File extension {extension} is not allowed for {category.value.lower()} files. "
            f"Allowed extensions: {', '.join(allowed)}",
        )
    return VALID


def validate_mime_type(mime_type: str, category: FileCategory) -> FileValidationResult:
    category = FileCategory(category)
    allowed = ALLOWED_MIME_TYPES[category]
    if allowed and mime_type not in allowed:
        return FileValidationResult(
            False,
            f"MIME type {mime_type} is not allowed for {category.value.lower()} files. "
            f"Allowed types: {', '.join(allowed)}",
        )
    return VALID


class FileValidator:
    """Category-aware file checks backed by the configured size limits."""

    def __init__(self, config: StorageConfig):
        self.size_limits: Dict[FileCategory, int] = {
            FileCategory.VIDEO: config.MAX_VIDEO_SIZE,
            FileCategory.IMAGE: config.MAX_IMAGE_SIZE,
            FileCategory.DOCUMENT: config.MAX_DOCUMENT_SIZE,
            FileCategory.OTHER: config.MAX_FILE_SIZE,
        }

    @property
    def transport_limit(self) -> int:
        """Largest limit of any category, the cap while the body is received."""
        return max(self.size_limits.values())

    def validate_file_size(self, size: int, category: FileCategory) -> FileValidationResult:
        category = FileCategory(category)
        max_size = self.size_limits[category]
        if size > max_size:
            max_mb = max_size / (1024 * 1024)
            return FileValidationResult(
                False,
                f"File size exceeds the maximum allowed size of {max_mb:.2f}MB "
                f"for {category.value.lower()} files",
            )
        return VALID

    def validate_file(self, filename: str, mime_type: str, size: int, category: FileCategory) -> FileValidationResult:
        result = validate_file_extension(filename, category)
        if not result.valid:
            return result

        result = validate_mime_type(mime_type, category)
        if not result.valid:
            return result

        return self.validate_file_size(size, category)
