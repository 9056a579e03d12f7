# app/repositories/audit_repository.py
from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.utils import utc_now
from app.models.system import AuditLog

class AuditLogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        action: str,
        entity: Optional[str] = None,
        user_id: Optional[int] = None,
        meta: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        record = AuditLog(
            action=action,
            entity=entity,
            user_id=user_id,
            meta=meta,
            ip_address=ip_address,
            user_agent=user_agent,
            created_at=utc_now(),
        )
        self.session.add(record)
        await self.session.commit()
        return record
