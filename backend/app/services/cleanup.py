# app/services/cleanup.py
import logging
import os
import time
from dataclasses import dataclass, asdict
from datetime import timedelta
from pathlib import Path
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import StorageConfig
from app.core.utils import utc_now
from app.models.media import File
from app.repositories.file_repository import FileRepository
from app.services.storage import LocalFileStorage

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    orphaned: int = 0
    expired: int = 0
    temp: int = 0

    def as_dict(self):
        return asdict(self)


class FileCleanupService:
    """Removes orphaned, expired and stale temporary files"""

    def __init__(self, session: AsyncSession, config: StorageConfig):
        self.files = FileRepository(session)
        self.session = session
        self.storage = LocalFileStorage(config)
        self.max_age = timedelta(hours=config.TEMP_MAX_AGE_HOURS)

    async def _delete_records(self, files: Iterable[File], kind: str) -> int:
        deleted = 0
        for file in files:
            try:
                self.storage.delete_quietly(file.path)
                await self.files.delete(file.id)
                deleted += 1
            except (OSError, SQLAlchemyError):
                await self.session.rollback()
                logger.exception(f"Failed to delete {kind} file {file.id}")
        logger.info(f"{kind.capitalize()} files cleanup completed: {deleted} deleted")
        return deleted

    async def cleanup_orphaned_files(self) -> int:
        files = await self.files.find_orphaned(utc_now() - self.max_age)
        return await self._delete_records(files, "orphaned")

    async def cleanup_expired_files(self) -> int:
        files = await self.files.find_expired(utc_now())
        return await self._delete_records(files, "expired")

    def cleanup_temp_files(self, temp_dir: Optional[Path] = None, now: Optional[float] = None) -> int:
        temp_dir = Path(temp_dir or self.storage.temp_dir)
        if not temp_dir.is_dir():
            return 0

        now = time.time() if now is None else now
        max_age_seconds = self.max_age.total_seconds()
        deleted = 0
        for entry in os.scandir(temp_dir):
            if not entry.is_file():
                continue
            if now - entry.stat().st_mtime > max_age_seconds:
                if self.storage.delete_quietly(entry.path):
                    deleted += 1

        logger.info(f"Temp files cleanup completed: {deleted} deleted")
        return deleted

    async def run(self) -> CleanupReport:
        logger.info("Starting scheduled file cleanup")
        report = CleanupReport(
            orphaned=await self.cleanup_orphaned_files(),
            expired=await self.cleanup_expired_files(),
            temp=self.cleanup_temp_files(),
        )
        logger.info(f"Scheduled cleanup completed: {report.as_dict()}")
        return report
