from __future__ import annotations

import re
from io import BytesIO
from pathlib import Path

import pytest

from app.core.exceptions import FileValidationError, NoFileProvidedError, PayloadTooLargeError
from app.models.media import FileCategory
from app.services.file_validation import FileValidator
from app.services.storage import LocalFileStorage
from app.services.upload_service import IncomingFile, IngestionStage, UploadIngestor

from conftest import make_storage_config

MB = 1024 * 1024


def _ingestor(tmp_path: Path, **overrides) -> UploadIngestor:
    config = make_storage_config(tmp_path, **overrides)
    storage = LocalFileStorage(config)
    storage.init()
    return UploadIngestor(storage, FileValidator(config))


def _incoming(filename: str, content_type: str, data: bytes = b"data") -> IncomingFile:
    return IncomingFile(filename=filename, content_type=content_type, stream=BytesIO(data))


def _temp_files(ingestor: UploadIngestor) -> list[Path]:
    return list(ingestor.storage.temp_dir.iterdir())


def test_storage_init_creates_category_directories(tmp_path: Path) -> None:
    storage = LocalFileStorage(make_storage_config(tmp_path))
    storage.init()

    for name in ("videos", "images", "documents", "temp", "hls"):
        assert (tmp_path / "uploads" / name).is_dir()


def test_storage_naming_and_urls(tmp_path: Path) -> None:
    storage = LocalFileStorage(make_storage_config(tmp_path))

    assert re.fullmatch(r"\d{13}-[a-z0-9]{13}\.mp4", storage.temp_filename("clip.mp4"))
    assert re.fullmatch(r"[0-9a-f-]{36}\.png", storage.generate_storage_filename("Photo.PNG"))
    assert storage.build_file_url(FileCategory.IMAGE, "a.png") == "/uploads/images/a.png"
    assert storage.relative_key(FileCategory.OTHER, "a.zip") == "a.zip"
    assert storage.build_file_path(FileCategory.VIDEO, "a.mp4") == tmp_path / "uploads" / "videos" / "a.mp4"


def test_checksum_is_sha256(tmp_path: Path) -> None:
    target = tmp_path / "f.txt"
    target.write_bytes(b"abc")

    assert LocalFileStorage.compute_checksum(target) == (
        "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
    )


def test_ingest_single_file(tmp_path: Path) -> None:
    ingestor = _ingestor(tmp_path)

    [item] = ingestor.ingest([_incoming("poster.png", "image/png", b"x" * 100)], path="/api/v1/uploads/")

    assert item.category is FileCategory.IMAGE
    assert item.received.size == 100
    assert item.received.temp_path.read_bytes() == b"x" * 100
    assert item.received.temp_path.parent == ingestor.storage.temp_dir
    assert item.history == [
        IngestionStage.RECEIVING,
        IngestionStage.CLASSIFYING,
        IngestionStage.VALIDATING,
        IngestionStage.ACCEPTED,
    ]


def test_ingest_uses_path_hint(tmp_path: Path) -> None:
    ingestor = _ingestor(tmp_path)

    with pytest.raises(FileValidationError) as exc_info:
        ingestor.ingest([_incoming("poster.png", "image/png")], path="/api/v1/uploads/videos")

    assert ".png" in exc_info.value.detail
    assert exc_info.value.status_code == 400


def test_rejected_file_is_left_for_cleanup(tmp_path: Path) -> None:
    ingestor = _ingestor(tmp_path)

    with pytest.raises(FileValidationError):
        ingestor.ingest([_incoming("evil.exe", "image/png")], path="/")

    assert len(_temp_files(ingestor)) == 1


def test_mime_mismatch_is_rejected(tmp_path: Path) -> None:
    ingestor = _ingestor(tmp_path)

    with pytest.raises(FileValidationError) as exc_info:
        ingestor.ingest([_incoming("clip.mp4", "video/x-flv")], path="/")

    assert "video/x-flv" in exc_info.value.detail


def test_oversize_upload_is_refused_and_removed(tmp_path: Path) -> None:
    ingestor = _ingestor(
        tmp_path,
        MAX_FILE_SIZE=MB,
        MAX_VIDEO_SIZE=MB,
        MAX_IMAGE_SIZE=MB,
        MAX_DOCUMENT_SIZE=MB,
        CHUNK_SIZE=64 * 1024,
    )

    with pytest.raises(PayloadTooLargeError) as exc_info:
        ingestor.ingest([_incoming("big.png", "image/png", b"x" * (MB + 1))], path="/")

    assert exc_info.value.detail == "File size exceeds the limit of 1 MB"
    assert exc_info.value.status_code == 413
    assert _temp_files(ingestor) == []


def test_no_file_provided(tmp_path: Path) -> None:
    ingestor = _ingestor(tmp_path)

    with pytest.raises(NoFileProvidedError, match="No file provided"):
        ingestor.ingest([None], path="/")
    with pytest.raises(NoFileProvidedError, match="No files provided"):
        ingestor.ingest([], path="/", multiple=True)
    with pytest.raises(NoFileProvidedError):
        ingestor.ingest([_incoming("", "image/png")], path="/")


def test_explicit_category_overrides_mime(tmp_path: Path) -> None:
    ingestor = _ingestor(tmp_path)

    [item] = ingestor.ingest(
        [_incoming("notes.txt", "text/plain")], explicit_category="document", path="/api/v1/uploads/images"
    )

    assert item.category is FileCategory.DOCUMENT


def test_ingest_multiple(tmp_path: Path) -> None:
    ingestor = _ingestor(tmp_path)

    items = ingestor.ingest(
        [_incoming("a.png", "image/png"), _incoming("b.pdf", "application/pdf")],
        path="/api/v1/uploads/multiple",
        multiple=True,
    )

    assert [i.category for i in items] == [FileCategory.IMAGE, FileCategory.DOCUMENT]
    assert len(_temp_files(ingestor)) == 2
