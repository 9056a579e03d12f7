# app/api/v1/routes/uploads.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File as FormFile, Form, Query, Request, UploadFile, status
from starlette.concurrency import run_in_threadpool

from app.api.deps import (
    get_current_user,
    get_file_service,
    get_ingestor,
    get_request_context,
    get_storage,
    require_roles,
)
from app.core.schemas.auth import MessageResponse
from app.core.schemas.files import (
    FileListResponse,
    FileResponse,
    MultipleUploadResponse,
    StorageInitResponse,
    StoredFileResponse,
    UploadResponse,
)
from app.models.media import File, FileCategory, FileVisibility
from app.models.user import User, UserRole
from app.services.audit import RequestContext
from app.services.file_service import FileService, UploadOptions
from app.services.storage import LocalFileStorage
from app.services.upload_service import IncomingFile, UploadIngestor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])


def to_file_response(file: File, file_service: FileService) -> StoredFileResponse:
    token = file_service.signed_token_for(file)
    return StoredFileResponse(
        **FileResponse.model_validate(file).model_dump(),
        url=file_service.public_url_for(file),
        signed_token=token,
        signed_url=f"/api/v1/stream/download/{file.id}?token={token}" if token else None,
    )


def _incoming(upload: Optional[UploadFile]) -> Optional[IncomingFile]:
    if upload is None:
        return None
    return IncomingFile(filename=upload.filename, content_type=upload.content_type, stream=upload.file)


async def _upload_single(
    request: Request,
    upload: Optional[UploadFile],
    category: Optional[str],
    options: UploadOptions,
    current_user: User,
    ingestor: UploadIngestor,
    file_service: FileService,
    context: RequestContext,
) -> UploadResponse:
    items = await run_in_threadpool(
        ingestor.ingest, [_incoming(upload)], explicit_category=category, path=request.url.path
    )
    file = await file_service.store_upload(items[0], options, current_user, context)
    return UploadResponse(message="File uploaded successfully", file=to_file_response(file, file_service))


def _upload_endpoint(summary: str):
    async def endpoint(
        request: Request,
        file: Optional[UploadFile] = FormFile(None),
        category: Optional[str] = Form(None),
        category_query: Optional[str] = Query(None, alias="category"),
        visibility: Optional[str] = Form(None),
        expires_in: Optional[str] = Form(None),
        course_id: Optional[str] = Form(None),
        lesson_id: Optional[str] = Form(None),
        blog_post_id: Optional[str] = Form(None),
        current_user: User = Depends(get_current_user),
        ingestor: UploadIngestor = Depends(get_ingestor),
        file_service: FileService = Depends(get_file_service),
        context: RequestContext = Depends(get_request_context),
    ):
        options = UploadOptions(visibility, expires_in, course_id, lesson_id, blog_post_id)
        return await _upload_single(
            request, file, category or category_query, options, current_user, ingestor, file_service, context
        )

    endpoint.__doc__ = summary
    return endpoint


router.add_api_route(
    "/", _upload_endpoint("Upload one file; the category comes from the form, the query or the MIME type"),
    methods=["POST"], response_model=UploadResponse, status_code=status.HTTP_201_CREATED,
)
router.add_api_route(
    "/videos", _upload_endpoint("Upload one video"),
    methods=["POST"], response_model=UploadResponse, status_code=status.HTTP_201_CREATED,
)
router.add_api_route(
    "/images", _upload_endpoint("Upload one image"),
    methods=["POST"], response_model=UploadResponse, status_code=status.HTTP_201_CREATED,
)
router.add_api_route(
    "/documents", _upload_endpoint("Upload one document"),
    methods=["POST"], response_model=UploadResponse, status_code=status.HTTP_201_CREATED,
)


@router.post("/multiple", response_model=MultipleUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_multiple_files(
    request: Request,
    files: Optional[List[UploadFile]] = FormFile(None),
    category: Optional[str] = Form(None),
    visibility: Optional[str] = Form(None),
    expires_in: Optional[str] = Form(None),
    course_id: Optional[str] = Form(None),
    lesson_id: Optional[str] = Form(None),
    blog_post_id: Optional[str] = Form(None),
    current_user: User = Depends(get_current_user),
    ingestor: UploadIngestor = Depends(get_ingestor),
    file_service: FileService = Depends(get_file_service),
    context: RequestContext = Depends(get_request_context),
):
    """Upload several files at once; files failing validation are skipped"""
    items = await run_in_threadpool(
        ingestor.ingest,
        [_incoming(f) for f in files or []],
        explicit_category=category,
        path=request.url.path,
        multiple=True,
    )
    options = UploadOptions(visibility, expires_in, course_id, lesson_id, blog_post_id)
    stored = await file_service.store_uploads(items, options, current_user, context)
    return MultipleUploadResponse(
        message=f"{len(stored)} file(s) uploaded successfully",
        files=[to_file_response(f, file_service) for f in stored],
        skipped=len(items) - len(stored),
    )


@router.post("/initialize", response_model=StorageInitResponse)
async def initialize_storage(
    _: User = Depends(require_roles(UserRole.ADMIN)),
    storage: LocalFileStorage = Depends(get_storage),
):
    await run_in_threadpool(storage.init)
    return StorageInitResponse(
        message="Storage directories initialized successfully",
        directories=[str(storage.root), str(storage.temp_dir), str(storage.hls_dir)],
    )


@router.get("/", response_model=FileListResponse)
async def list_files(
    category: Optional[FileCategory] = None,
    visibility: Optional[FileVisibility] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    """Files visible to the caller; admins see everything"""
    files, total, total_pages = await file_service.list_files(
        current_user, category=category, visibility=visibility, page=page, limit=limit
    )
    return FileListResponse(
        items=[to_file_response(f, file_service) for f in files],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
    )


@router.get("/{file_id}", response_model=StoredFileResponse)
async def get_file(
    file_id: str,
    current_user: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
):
    file = await file_service.get_file_for(file_id, current_user)
    return to_file_response(file, file_service)


@router.delete("/{file_id}", response_model=MessageResponse)
async def delete_file(
    file_id: str,
    current_user: User = Depends(get_current_user),
    file_service: FileService = Depends(get_file_service),
    context: RequestContext = Depends(get_request_context),
):
    await file_service.delete_file(file_id, current_user, context)
    return MessageResponse(message="File deleted successfully")
