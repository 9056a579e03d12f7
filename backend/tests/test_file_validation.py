from __future__ import annotations

from pathlib import Path

import pytest

from app.core.exceptions import ValidationError
from app.models.media import FileCategory
from app.services.file_validation import (
    FileValidator,
    classify_file,
    infer_category,
    parse_category,
    validate_file_extension,
    validate_mime_type,
)

from conftest import make_storage_config

MB = 1024 * 1024


@pytest.mark.parametrize(
    ("mime_type", "filename", "expected"),
    [
        ("video/mp4", None, FileCategory.VIDEO),
        ("video/mp4", "x.png", FileCategory.VIDEO),
        ("image/png", "clip.mp4", FileCategory.IMAGE),
        ("application/pdf", None, FileCategory.DOCUMENT),
        ("text/csv", None, FileCategory.DOCUMENT),
        ("application/octet-stream", "lecture.MOV", FileCategory.VIDEO),
        ("application/octet-stream", "scan.JPEG", FileCategory.IMAGE),
        ("application/octet-stream", "notes.docx", FileCategory.DOCUMENT),
        ("application/zip", "archive.zip", FileCategory.OTHER),
        ("application/octet-stream", None, FileCategory.OTHER),
    ],
)
def test_classify_file(mime_type: str, filename: str | None, expected: FileCategory) -> None:
    assert classify_file(mime_type, filename) is expected


def test_infer_category_explicit_wins_over_path_and_mime() -> None:
    assert infer_category(" image ", "/api/v1/uploads/videos", "video/mp4") is FileCategory.IMAGE


def test_infer_category_ignores_unknown_explicit_value() -> None:
    assert infer_category("audio", "/api/v1/uploads/videos", "image/png") is FileCategory.VIDEO


def test_infer_category_path_hint_then_mime_prefix() -> None:
    assert infer_category(None, "/api/v1/uploads/documents", "image/png") is FileCategory.DOCUMENT
    assert infer_category(None, "/api/v1/uploads/", "image/png") is FileCategory.IMAGE
    assert infer_category(None, "/api/v1/uploads/", "application/zip") is FileCategory.DOCUMENT
    assert infer_category(None, "/api/v1/uploads/", "text/plain") is FileCategory.OTHER


def test_parse_category() -> None:
    assert parse_category("video") is FileCategory.VIDEO
    assert parse_category("") is None
    assert parse_category("nope") is None


def test_validate_file_extension_messages() -> None:
    assert validate_file_extension("photo.PNG", FileCategory.IMAGE).valid

    missing = validate_file_extension("README", FileCategory.DOCUMENT)
    assert not missing.valid
    assert missing.error == "File must have an extension"

    wrong = validate_file_extension("movie.mp4", FileCategory.IMAGE)
    assert not wrong.valid
    assert ".mp4" in wrong.error
    assert ".png" in wrong.error


def test_validate_mime_type() -> None:
    assert validate_mime_type("video/webm", FileCategory.VIDEO).valid
    result = validate_mime_type("image/bmp", FileCategory.IMAGE)
    assert not result.valid
    assert "image/bmp" in result.error
    assert "image/jpeg" in result.error


def test_other_category_accepts_any_extension_and_mime() -> None:
    assert validate_file_extension("bundle.zip", FileCategory.OTHER).valid
    assert validate_mime_type("application/x-anything", FileCategory.OTHER).valid


def test_validate_file_size_message(tmp_path: Path) -> None:
    validator = FileValidator(make_storage_config(tmp_path))

    assert validator.validate_file_size(10 * MB, FileCategory.IMAGE).valid
    result = validator.validate_file_size(10 * MB + 1, FileCategory.IMAGE)
    assert not result.valid
    assert result.error == "File size exceeds the maximum allowed size of 10.00MB for image files"


def test_other_category_is_bounded_by_max_file_size(tmp_path: Path) -> None:
    validator = FileValidator(make_storage_config(tmp_path, MAX_FILE_SIZE=5 * MB))

    assert not validator.validate_file_size(5 * MB + 1, FileCategory.OTHER).valid


def test_validate_file_checks_extension_then_mime_then_size(tmp_path: Path) -> None:
    validator = FileValidator(make_storage_config(tmp_path, MAX_IMAGE_SIZE=MB))

    bad_everything = validator.validate_file("x.exe", "application/x-msdownload", 2 * MB, FileCategory.IMAGE)
    assert "extension" in bad_everything.error

    bad_mime_and_size = validator.validate_file("x.png", "application/x-msdownload", 2 * MB, FileCategory.IMAGE)
    assert "MIME type" in bad_mime_and_size.error

    too_big = validator.validate_file("x.png", "image/png", 2 * MB, FileCategory.IMAGE)
    assert "1.00MB" in too_big.error

    assert validator.validate_file("x.png", "image/png", MB, FileCategory.IMAGE).valid


def test_transport_limit_is_largest_category_limit(tmp_path: Path) -> None:
    validator = FileValidator(make_storage_config(tmp_path))

    assert validator.transport_limit == 2 * 1024 * MB


def test_validate_file_rejects_wrong_extension_despite_video_mime(tmp_path: Path) -> None:
    validator = FileValidator(make_storage_config(tmp_path))

    result = validator.validate_file("movie.exe", "video/mp4", 100, FileCategory.VIDEO)

    assert not result.valid
    assert result.error.startswith("File extension .exe is not allowed for video files")


def test_validation_errors_are_bad_requests() -> None:
    assert ValidationError().status_code == 400
    assert ValidationError("Invalid expiresIn value").status_code == 400
