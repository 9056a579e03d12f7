# app/services/file_service.py
import logging
import math
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    FileValidationError,
    NotFoundError,
    ValidationError,
)
from app.core.signing import URLSigner
from app.core.utils import parse_duration, utc_now
from app.models.media import File, FileCategory, FileVisibility
from app.models.user import User, UserRole
from app.repositories.file_repository import FileRepository
from app.services.audit import AuditLogger, RequestContext
from app.services.file_validation import FileValidator, classify_file
from app.services.storage import LocalFileStorage
from app.services.upload_service import IngestedFile

logger = logging.getLogger(__name__)


def normalize_visibility(value: Optional[str]) -> FileVisibility:
    if isinstance(value, str):
        try:
            return FileVisibility(value.strip().upper())
        except ValueError:
            pass
    return FileVisibility.PRIVATE


def normalize_relation_id(value: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def resolve_expiry_date(expires_in: Optional[str]) -> Optional[datetime]:
    """Absolute expiry for a duration string such as "7d"; None when it does not parse"""
    if not expires_in:
        return None
    try:
        delta = parse_duration(str(expires_in))
    except ValueError:
        return None
    if delta.total_seconds() <= 0:
        return None
    return utc_now() + delta


class UploadOptions:
    def __init__(
        self,
        visibility: Optional[str] = None,
        expires_in: Optional[str] = None,
        course_id: Optional[str] = None,
        lesson_id: Optional[str] = None,
        blog_post_id: Optional[str] = None,
    ):
        self.visibility = normalize_visibility(visibility)
        self.raw_expires_in = expires_in
        self.expires_at = resolve_expiry_date(expires_in)
        self.course_id = normalize_relation_id(course_id)
        self.lesson_id = normalize_relation_id(lesson_id)
        self.blog_post_id = normalize_relation_id(blog_post_id)


class FileService:
    """Moves screened uploads into permanent storage and owns file records."""

    def __init__(
        self,
        session: AsyncSession,
        storage: LocalFileStorage,
        validator: FileValidator,
        signer: URLSigner,
    ):
        self.files = FileRepository(session)
        self.audit = AuditLogger(session)
        self.storage = storage
        self.validator = validator
        self.signer = signer

    def signed_token_for(self, file: File) -> Optional[str]:
        if file.visibility == FileVisibility.PRIVATE.value:
            return self.signer.generate_signed_token(file.id)
        return None

    @staticmethod
    def public_url_for(file: File) -> Optional[str]:
        return file.url if file.visibility == FileVisibility.PUBLIC.value else None

    async def _persist(self, item: IngestedFile, options: UploadOptions, uploader: Optional[User]) -> File:
        received = item.received
        category = classify_file(received.mime_type, received.original_filename)
        validation = self.validator.validate_file(
            received.original_filename, received.mime_type, received.size, category
        )
        if not validation.valid:
            self.storage.delete_quietly(received.temp_path)
            raise FileValidationError(validation.error or "File validation failed")

        filename = self.storage.generate_storage_filename(received.original_filename)
        file_path = await run_in_threadpool(self.storage.move_into_place, received.temp_path, category, filename)
        checksum = await run_in_threadpool(self.storage.compute_checksum, file_path)

        try:
            return await self.files.create(
                id=str(uuid.uuid4()),
                filename=filename,
                original_filename=received.original_filename,
                mime_type=received.mime_type,
                size=received.size,
                path=str(file_path),
                url=self.storage.build_file_url(category, filename),
                key=self.storage.relative_key(category, filename),
                category=category.value,
                visibility=options.visibility.value,
                checksum=checksum,
                expires_at=options.expires_at,
                uploader_id=uploader.id if uploader else None,
                course_id=options.course_id,
                lesson_id=options.lesson_id,
                blog_post_id=options.blog_post_id,
            )
        except SQLAlchemyError:
            self.storage.delete_quietly(file_path)
            raise

    def _discard(self, items: List[IngestedFile]) -> None:
        for item in items:
            self.storage.delete_quietly(item.received.temp_path)

    async def store_upload(
        self, item: IngestedFile, options: UploadOptions, uploader: Optional[User], context: RequestContext
    ) -> File:
        if options.raw_expires_in and options.expires_at is None:
            self._discard([item])
            raise ValidationError("Invalid expiresIn value")

        file = await self._persist(item, options, uploader)
        logger.info(f"Stored file {file.id} ({file.category}, {file.size} bytes)")
        await self.audit.log("file.upload", entity="file", user_id=uploader.id if uploader else None,
                             meta={"file_id": file.id, "category": file.category}, context=context)
        return file

    async def store_uploads(
        self, items: List[IngestedFile], options: UploadOptions, uploader: Optional[User], context: RequestContext
    ) -> List[File]:
        """Store several uploads; files that fail validation are skipped"""
        if options.raw_expires_in and options.expires_at is None:
            self._discard(items)
            raise ValidationError("Invalid expiresIn value")

        stored = []
        for item in items:
            try:
                stored.append(await self._persist(item, options, uploader))
            except FileValidationError as e:
                logger.info(f"Skipping {item.received.original_filename}: {e.detail}")
        if stored:
            await self.audit.log("file.upload", entity="file", user_id=uploader.id if uploader else None,
                                 meta={"file_ids": [f.id for f in stored]}, context=context)
        return stored

    async def get_file(self, file_id: str) -> File:
        file = await self.files.get(file_id)
        if not file:
            raise NotFoundError("File not found")
        return file

    async def list_files(
        self,
        user: User,
        *,
        category: Optional[FileCategory] = None,
        visibility: Optional[FileVisibility] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Tuple[List[File], int, int]:
        files, total = await self.files.list(
            category=category,
            visibility=visibility,
            visible_to_user_id=user.id,
            restrict=user.role != UserRole.ADMIN.value,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return files, total, math.ceil(total / limit) if limit else 0

    @staticmethod
    def is_owner_or_admin(file: File, user: Optional[User]) -> bool:
        if user is None:
            return False
        return user.role == UserRole.ADMIN.value or (file.uploader_id is not None and file.uploader_id == user.id)

    async def get_file_for(self, file_id: str, user: User) -> File:
        """A file record as seen by a logged-in user; other users' PRIVATE files are hidden"""
        file = await self.get_file(file_id)
        if file.visibility == FileVisibility.PRIVATE.value and not self.is_owner_or_admin(file, user):
            raise AuthorizationError("You do not have access to this file")
        return file

    async def delete_file(self, file_id: str, user: User, context: RequestContext) -> None:
        file = await self.get_file(file_id)
        if not self.is_owner_or_admin(file, user):
            raise AuthorizationError("You do not have permission to delete this file")

        self.storage.delete_quietly(file.path)
        await self.files.delete(file_id)
        await self.audit.log("file.delete", entity="file", user_id=user.id,
                             meta={"file_id": file_id}, context=context)

    def assert_file_access(self, file: File, user: Optional[User], token: Optional[str]) -> None:
        """PUBLIC is open, PROTECTED needs a login, PRIVATE needs a signed token unless owner or admin"""
        if file.visibility == FileVisibility.PUBLIC.value:
            return

        if file.visibility == FileVisibility.PROTECTED.value:
            if user is None:
                raise AuthenticationError("Authentication required for protected files")
            return

        if not token and not self.is_owner_or_admin(file, user):
            raise AuthenticationError("Access token required for private files")

        if token:
            payload = self.signer.verify_signed_token(token)
            if payload.file_id != file.id:
                raise AuthorizationError("Invalid access token")

    async def record_access(self, file_id: str) -> None:
        try:
            await self.files.record_access(file_id)
        except SQLAlchemyError:
            await self.files.session.rollback()
            logger.exception(f"Failed to record file access for {file_id}")

    @staticmethod
    def ensure_on_disk(file: File) -> Path:
        path = Path(file.path)
        if not path.is_file():
            raise NotFoundError("File not found on disk")
        return path
