# app/repositories/file_repository.py
from typing import Optional, List, Tuple
from datetime import datetime
from sqlalchemy import select, update, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.utils import utc_now
from app.models.media import File, FileCategory, FileVisibility

class FileRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **values) -> File:
        values.setdefault("created_at", utc_now())
        values.setdefault("updated_at", utc_now())
        db_file = File(**values)
        self.session.add(db_file)
        await self.session.commit()
        await self.session.refresh(db_file)
        return db_file

    async def get(self, file_id: str) -> Optional[File]:
        stmt = select(File).where(File.id == file_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def delete(self, file_id: str) -> None:
        await self.session.execute(delete(File).where(File.id == file_id))
        await self.session.commit()

    async def list(
        self,
        *,
        category: Optional[FileCategory] = None,
        visibility: Optional[FileVisibility] = None,
        visible_to_user_id: Optional[int] = None,
        restrict: bool = True,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[File], int]:
        """Page of files plus the total count; ``restrict`` hides other users' non-public files"""
        conditions = []
        if category is not None:
            conditions.append(File.category == FileCategory(category).value)
        if visibility is not None:
            conditions.append(File.visibility == FileVisibility(visibility).value)
        if restrict:
            conditions.append(or_(
                File.visibility == FileVisibility.PUBLIC.value,
                File.uploader_id == visible_to_user_id,
            ))

        stmt = select(File).where(*conditions).order_by(File.created_at.desc()).offset(offset).limit(limit)
        count_stmt = select(func.count()).select_from(File).where(*conditions)

        files = (await self.session.execute(stmt)).scalars().all()
        total = (await self.session.execute(count_stmt)).scalar() or 0
        return list(files), total

    async def record_access(self, file_id: str) -> None:
        stmt = update(File).where(File.id == file_id).values(
            access_count=File.access_count + 1,
            last_accessed_at=utc_now(),
        )
        await self.session.execute(stmt)
        await self.session.commit()

    async def update_fields(self, file_id: str, **values) -> None:
        stmt = update(File).where(File.id == file_id).values(updated_at=utc_now(), **values)
        await self.session.execute(stmt)
        await self.session.commit()

    async def find_orphaned(self, created_before: datetime) -> List[File]:
        """Files attached to nothing and older than the cutoff"""
        stmt = select(File).where(
            File.uploader_id.is_(None),
            File.course_id.is_(None),
            File.lesson_id.is_(None),
            File.blog_post_id.is_(None),
            File.created_at < created_before,
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def find_expired(self, now: datetime) -> List[File]:
        stmt = select(File).where(File.expires_at.is_not(None), File.expires_at < now)
        return list((await self.session.execute(stmt)).scalars().all())
