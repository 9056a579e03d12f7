# app/core/schemas/files.py
from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, List, Optional
from datetime import datetime


class FileResponse(BaseModel):
    id: str
    original_filename: str
    mime_type: str
    size: int
    category: str
    visibility: str
    checksum: Optional[str] = None
    expires_at: Optional[datetime] = None
    uploader_id: Optional[int] = None
    course_id: Optional[str] = None
    lesson_id: Optional[str] = None
    blog_post_id: Optional[str] = None
    access_count: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class StoredFileResponse(FileResponse):
    """Upload/detail answer: a public URL for PUBLIC files, a signed token for PRIVATE ones"""
    url: Optional[str] = None
    signed_token: Optional[str] = None
    signed_url: Optional[str] = None


class UploadResponse(BaseModel):
    message: str
    file: StoredFileResponse


class MultipleUploadResponse(BaseModel):
    message: str
    files: List[StoredFileResponse]
    skipped: int = 0


class FileListResponse(BaseModel):
    items: List[StoredFileResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class VideoMetadataResponse(BaseModel):
    file_id: str
    filename: str
    mime_type: str
    size: int
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    metadata: Optional[Dict[str, Any]] = None
    is_processed: bool
    processed_at: Optional[datetime] = None
    hls_status: Optional[str] = None


class HlsStatusResponse(BaseModel):
    file_id: str
    status: str
    manifest_url: Optional[str] = None
    message: Optional[str] = None


class StorageInitResponse(BaseModel):
    message: str
    directories: List[str]
