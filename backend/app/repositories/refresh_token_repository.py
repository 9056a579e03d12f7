# app/repositories/refresh_token_repository.py
from typing import Optional
from datetime import datetime
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.utils import utc_now
from app.models.auth import RefreshToken

class RefreshTokenRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        token_id: str,
        user_id: int,
        token_hash: str,
        expires_at: datetime,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> RefreshToken:
        record = RefreshToken(
            id=token_id,
            user_id=user_id,
            token_hash=token_hash,
            expires_at=expires_at,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=utc_now(),
        )
        self.session.add(record)
        await self.session.commit()
        return record

    async def get_by_hash(self, token_hash: str) -> Optional[RefreshToken]:
        stmt = select(RefreshToken).where(RefreshToken.token_hash == token_hash)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def revoke(self, token_id: str, replaced_by: Optional[str] = None) -> None:
        values = {"revoked_at": utc_now()}
        if replaced_by:
            values["replaced_by_token_id"] = replaced_by
        stmt = update(RefreshToken).where(RefreshToken.id == token_id).values(**values)
        await self.session.execute(stmt)
        await self.session.commit()
