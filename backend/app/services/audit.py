# app/services/audit.py
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.audit_repository import AuditLogRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def _serialize_meta(meta: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if meta is None:
        return None
    try:
        return json.loads(json.dumps(meta, default=str))
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to serialize audit metadata: {e}")
        return None


class AuditLogger:
    """Best-effort audit trail; a failed write is logged and never fails the request."""

    def __init__(self, session: AsyncSession):
        self.repository = AuditLogRepository(session)
        self.session = session

    async def log(
        self,
        action: str,
        *,
        entity: Optional[str] = None,
        user_id: Optional[int] = None,
        meta: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
    ) -> None:
        context = context or RequestContext()
        try:
            await self.repository.create(
                action=action,
                entity=entity,
                user_id=user_id,
                meta=_serialize_meta(meta),
                ip_address=context.ip_address,
                user_agent=context.user_agent,
            )
        except SQLAlchemyError:
            await self.session.rollback()
            logger.exception(f"Failed to record audit event {action}")
