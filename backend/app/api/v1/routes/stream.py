# app/api/v1/routes/stream.py
import logging
import os
from typing import Iterator, Optional, Tuple
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from fastapi.responses import FileResponse, JSONResponse, Response, StreamingResponse

from app.api.deps import get_current_user, get_file_service, get_hls_packager, get_optional_user
from app.core.exceptions import AuthorizationError, NotFoundError, ServiceUnavailableError, ValidationError
from app.core.schemas.files import HlsStatusResponse, VideoMetadataResponse
from app.models.media import File, FileCategory, FileVisibility
from app.models.user import User
from app.services.file_service import FileService
from app.services.hls import HLS_PENDING, HLS_READY, MANIFEST_NAME, HlsPackager, rewrite_playlist

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stream", tags=["stream"])

HLS_PLAYLIST_TYPE = "application/vnd.apple.mpegurl"
HLS_SEGMENT_TYPE = "video/mp2t"


def parse_byte_range(header: str, file_size: int, chunk_size: int) -> Optional[Tuple[int, int]]:
    """Inclusive (start, end) for a ``bytes=a-b`` header, or None when it cannot be satisfied.

    An open end is served as one chunk from ``start``; the end is clamped to the file.
    """
    value = header.strip()
    if value.startswith("bytes="):
        value = value[len("bytes="):]
    start_part, _, end_part = value.partition("-")

    try:
        start = int(start_part) if start_part.strip() else 0
    except ValueError:
        return None

    if end_part.strip():
        try:
            end = int(end_part)
        except ValueError:
            end = file_size - 1
    else:
        end = start + chunk_size - 1
    end = min(end, file_size - 1)

    if start < 0 or start >= file_size or end < start:
        return None
    return start, end


def content_disposition(disposition_type: str, filename: str) -> str:
    """Header value that survives latin-1 encoding, same rule as starlette's FileResponse"""
    quoted = quote(filename)
    if quoted != filename:
        return f"{disposition_type}; filename*=utf-8''{quoted}"
    return f'{disposition_type}; filename="{filename}"'


def iter_file_range(path: str, start: int, end: int, block_size: int = 64 * 1024) -> Iterator[bytes]:
    remaining = end - start + 1
    with open(path, "rb") as f:
        f.seek(start)
        while remaining > 0:
            chunk = f.read(min(block_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def _require_video(file: File, message: str) -> None:
    if file.category != FileCategory.VIDEO.value:
        raise ValidationError(message)


@router.get("/video/{file_id}")
async def stream_video(
    file_id: str,
    request: Request,
    token: Optional[str] = Query(None),
    current_user: Optional[User] = Depends(get_optional_user),
    file_service: FileService = Depends(get_file_service),
):
    """Stream a video, honouring single byte ranges"""
    file = await file_service.get_file(file_id)
    _require_video(file, "Only video files can be streamed")
    file_service.assert_file_access(file, current_user, token)
    path = file_service.ensure_on_disk(file)

    await file_service.record_access(file.id)

    file_size = os.path.getsize(path)
    disposition = content_disposition("inline", file.original_filename)
    range_header = request.headers.get("range")

    if range_header:
        chunk_size = request.app.state.settings.storage.CHUNK_SIZE
        byte_range = parse_byte_range(range_header, file_size, chunk_size)
        if byte_range is None:
            return Response(
                status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
                headers={"Content-Range": f"bytes */{file_size}"},
            )

        start, end = byte_range
        return StreamingResponse(
            iter_file_range(str(path), start, end),
            status_code=status.HTTP_206_PARTIAL_CONTENT,
            media_type=file.mime_type,
            headers={
                "Content-Range": f"bytes {start}-{end}/{file_size}",
                "Accept-Ranges": "bytes",
                "Content-Length": str(end - start + 1),
                "Content-Disposition": disposition,
            },
        )

    return StreamingResponse(
        iter_file_range(str(path), 0, file_size - 1),
        media_type=file.mime_type,
        headers={
            "Accept-Ranges": "bytes",
            "Content-Length": str(file_size),
            "Content-Disposition": disposition,
        },
    )


@router.get("/video/{file_id}/metadata", response_model=VideoMetadataResponse)
async def get_video_metadata(
    file_id: str,
    _: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    file = await file_service.get_file(file_id)
    _require_video(file, "Only video files have metadata")
    return VideoMetadataResponse(
        file_id=file.id,
        filename=file.original_filename,
        mime_type=file.mime_type,
        size=file.size,
        duration=file.duration,
        width=file.width,
        height=file.height,
        metadata=file.meta,
        is_processed=file.is_processed,
        processed_at=file.processed_at,
        hls_status=file.hls_status,
    )


@router.post("/video/{file_id}/hls", response_model=HlsStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def convert_to_hls(
    file_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
    packager: HlsPackager = Depends(get_hls_packager),
):
    """Schedule HLS packaging of a video"""
    file = await file_service.get_file(file_id)
    _require_video(file, "Only video files can be converted to HLS")
    if file.visibility == FileVisibility.PRIVATE.value and not file_service.is_owner_or_admin(file, current_user):
        raise AuthorizationError("You do not have access to this file")

    if file.hls_status == HLS_PENDING:
        return HlsStatusResponse(file_id=file.id, status=HLS_PENDING, message="HLS conversion already in progress")

    if not packager.is_available():
        raise ServiceUnavailableError("HLS conversion requires ffmpeg, which is not installed")

    file_service.ensure_on_disk(file)
    await packager.mark_pending(file.id)
    background_tasks.add_task(packager.package, file.id, file.path)
    logger.info(f"HLS conversion scheduled for {file.id} by user {current_user.id}")
    return HlsStatusResponse(file_id=file.id, status=HLS_PENDING, message="HLS conversion initiated")


@router.get("/video/{file_id}/hls")
async def get_hls_manifest(
    file_id: str,
    request: Request,
    token: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
    packager: HlsPackager = Depends(get_hls_packager),
):
    file = await file_service.get_file(file_id)
    _require_video(file, "Only video files support HLS streaming")
    file_service.assert_file_access(file, current_user, token)

    if file.hls_status == HLS_PENDING:
        body = HlsStatusResponse(file_id=file.id, status=HLS_PENDING, message="HLS conversion in progress")
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=body.model_dump())

    manifest = packager.resolve_segment(file.id, MANIFEST_NAME)
    if file.hls_status != HLS_READY or manifest is None:
        raise NotFoundError("HLS playlist is not available for this video")
    # players fetch segments without auth headers
    playlist = rewrite_playlist(
        manifest.read_text(),
        base_url=f"{request.url.path.rstrip('/')}/",
        token=file_service.signed_token_for(file),
    )
    return Response(playlist, media_type=HLS_PLAYLIST_TYPE)


@router.get("/video/{file_id}/hls/{segment}")
async def get_hls_segment(
    file_id: str,
    segment: str,
    token: Optional[str] = Query(None),
    current_user: Optional[User] = Depends(get_optional_user),
    file_service: FileService = Depends(get_file_service),
    packager: HlsPackager = Depends(get_hls_packager),
):
    file = await file_service.get_file(file_id)
    file_service.assert_file_access(file, current_user, token)

    path = packager.resolve_segment(file.id, segment)
    if path is None:
        raise NotFoundError("Segment not found")
    media_type = HLS_PLAYLIST_TYPE if segment.endswith(".m3u8") else HLS_SEGMENT_TYPE
    return FileResponse(path, media_type=media_type)


@router.get("/download/{file_id}")
async def download_file(
    file_id: str,
    token: Optional[str] = Query(None),
    current_user: Optional[User] = Depends(get_optional_user),
    file_service: FileService = Depends(get_file_service),
):
    """Download any file as an attachment"""
    file = await file_service.get_file(file_id)
    file_service.assert_file_access(file, current_user, token)
    path = file_service.ensure_on_disk(file)

    await file_service.record_access(file.id)

    return FileResponse(
        path,
        media_type=file.mime_type,
        filename=file.original_filename,
        content_disposition_type="attachment",
    )
