# app/services/hls.py
import asyncio
import logging
import shutil
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from app.core.config import StorageConfig
from app.core.database import DatabaseHelper
from app.core.utils import utc_now
from app.repositories.file_repository import FileRepository

logger = logging.getLogger(__name__)

HLS_PENDING = "pending"
HLS_READY = "ready"
HLS_FAILED = "failed"

MANIFEST_NAME = "index.m3u8"


def rewrite_playlist(playlist: str, base_url: str, token: Optional[str] = None) -> str:
    """Point every segment entry at base_url, with the signed token in the query when given"""
    query = f"?token={quote(token, safe='')}" if token else ""
    lines = []
    for line in playlist.splitlines():
        entry = line.strip()
        if entry and not entry.startswith("#"):
            line = f"{base_url}{entry}{query}"
        lines.append(line)
    return "\n".join(lines) + "\n"


class HlsPackager:
    """Packages stored videos into HLS playlists with ffmpeg"""

    def __init__(self, config: StorageConfig, db: DatabaseHelper, ffmpeg_binary: str = "ffmpeg",
                 segment_seconds: int = 6):
        self.root = Path(config.hls_dir)
        self.db = db
        self.ffmpeg_binary = ffmpeg_binary
        self.segment_seconds = segment_seconds

    @property
    def ffmpeg_path(self) -> Optional[str]:
        return shutil.which(self.ffmpeg_binary)

    def is_available(self) -> bool:
        return self.ffmpeg_path is not None

    def output_dir(self, file_id: str) -> Path:
        return self.root / file_id

    def manifest_path(self, file_id: str) -> Path:
        return self.output_dir(file_id) / MANIFEST_NAME

    def build_command(self, source: str, file_id: str) -> List[str]:
        out = self.output_dir(file_id)
        return [
            self.ffmpeg_path or self.ffmpeg_binary,
            "-y",
            "-i", str(source),
            "-codec:", "copy",
            "-start_number", "0",
            "-hls_time", str(self.segment_seconds),
            "-hls_list_size", "0",
            "-hls_segment_filename", str(out / "segment_%03d.ts"),
            "-f", "hls",
            str(out / MANIFEST_NAME),
        ]

    async def _set_status(self, file_id: str, **values) -> None:
        async with self.db.session_factory() as session:
            await FileRepository(session).update_fields(file_id, **values)

    async def mark_pending(self, file_id: str) -> None:
        await self._set_status(file_id, hls_status=HLS_PENDING)

    async def package(self, file_id: str, source: str) -> bool:
        """Run ffmpeg for one video and record the outcome on the file row"""
        logger.info(f"Starting HLS packaging for {file_id}")

        try:
            self.output_dir(file_id).mkdir(parents=True, exist_ok=True)
            process = await asyncio.create_subprocess_exec(
                *self.build_command(source, file_id),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await process.communicate()
        except OSError:
            logger.exception(f"Could not run ffmpeg for {file_id}")
            await self._set_status(file_id, hls_status=HLS_FAILED)
            return False

        if process.returncode != 0:
            tail = stderr.decode(errors="replace")[-500:] if stderr else ""
            logger.error(f"ffmpeg exited with {process.returncode} for {file_id}: {tail}")
            await self._set_status(file_id, hls_status=HLS_FAILED)
            return False

        await self._set_status(
            file_id,
            hls_status=HLS_READY,
            hls_manifest_path=str(self.manifest_path(file_id)),
            is_processed=True,
            processed_at=utc_now(),
        )
        logger.info(f"HLS packaging finished for {file_id}")
        return True

    def resolve_segment(self, file_id: str, name: str) -> Optional[Path]:
        """Path of a playlist or segment inside the file's HLS directory, None if outside or missing"""
        base = self.output_dir(file_id).resolve()
        candidate = (base / name).resolve()
        if candidate.parent != base or not candidate.is_file():
            return None
        return candidate
