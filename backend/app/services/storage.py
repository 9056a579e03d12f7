# app/services/storage.py
import hashlib
import logging
import os
import secrets
import shutil
import string
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, Optional

from app.core.config import StorageConfig
from app.core.exceptions import PayloadTooLargeError
from app.core.utils import format_megabytes
from app.models.media import FileCategory

logger = logging.getLogger(__name__)

_ALPHABET = string.ascii_lowercase + string.digits

# path segment for each category under the upload root; OTHER lives at the root
CATEGORY_SEGMENTS: Dict[FileCategory, Optional[str]] = {
    FileCategory.VIDEO: "videos",
    FileCategory.IMAGE: "images",
    FileCategory.DOCUMENT: "documents",
    FileCategory.OTHER: None,
}


@dataclass
class ReceivedFile:
    """A multipart part written to the temp directory."""
    original_filename: str
    mime_type: str
    size: int
    temp_path: Path


class LocalFileStorage:
    def __init__(self, config: StorageConfig):
        self.config = config
        self.root = Path(config.UPLOAD_DIR)
        self.temp_dir = Path(config.temp_dir)
        self.hls_dir = Path(config.hls_dir)

    def init(self) -> None:
        """Create the upload root and every category directory"""
        for directory in (
            self.root,
            Path(self.config.video_dir),
            Path(self.config.image_dir),
            Path(self.config.document_dir),
            self.temp_dir,
            self.hls_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)

    def category_dir(self, category: FileCategory) -> Path:
        segment = CATEGORY_SEGMENTS.get(FileCategory(category))
        return self.root / segment if segment else self.root

    @staticmethod
    def temp_filename(original_filename: str) -> str:
        """Collision-resistant temp name: ms timestamp, random suffix, original extension."""
        suffix = "".join(secrets.choice(_ALPHABET) for _ in range(13))
        extension = os.path.splitext(original_filename or "")[1]
        return f"{int(time.time() * 1000)}-{suffix}{extension}"

    @staticmethod
    def generate_storage_filename(original_filename: str) -> str:
        extension = os.path.splitext(original_filename or "")[1].lower()
        return f"{uuid.uuid4()}{extension}"

    def build_file_path(self, category: FileCategory, filename: str) -> Path:
        return self.category_dir(category) / filename

    @staticmethod
    def relative_key(category: FileCategory, filename: str) -> str:
        segment = CATEGORY_SEGMENTS.get(FileCategory(category))
        return f"{segment}/{filename}" if segment else filename

    def build_file_url(self, category: FileCategory, filename: str) -> str:
        return f"/uploads/{self.relative_key(category, filename)}"

    def receive(self, source: BinaryIO, original_filename: str, mime_type: str, max_size_bytes: int) -> ReceivedFile:
        """Stream an upload into the temp directory, refusing anything over ``max_size_bytes``."""
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        target = self.temp_dir / self.temp_filename(original_filename)

        total = 0
        with target.open("wb") as f:
            while True:
                chunk = source.read(self.config.CHUNK_SIZE)
                if not chunk:
                    break
                total += len(chunk)
                if total > max_size_bytes:
                    f.close()
                    target.unlink(missing_ok=True)
                    raise PayloadTooLargeError(
                        f"File size exceeds the limit of {format_megabytes(max_size_bytes)} MB"
                    )
                f.write(chunk)

        return ReceivedFile(
            original_filename=original_filename,
            mime_type=mime_type,
            size=total,
            temp_path=target,
        )

    def move_into_place(self, temp_path: Path, category: FileCategory, filename: str) -> Path:
        target = self.build_file_path(category, filename)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(temp_path), str(target))
        return target

    @staticmethod
    def compute_checksum(file_path: Path, algorithm: str = "sha256") -> str:
        digest = hashlib.new(algorithm)
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(1024 * 1024), b""):
                digest.update(chunk)
        return digest.hexdigest()

    @staticmethod
    def delete_quietly(file_path) -> bool:
        """Remove a file; a file that is already gone is not an error."""
        try:
            os.unlink(file_path)
            return True
        except FileNotFoundError:
            return False
