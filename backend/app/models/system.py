# app/models/system.py
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON, func
from .base import Base

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    action = Column(String, nullable=False)  # auth.login, auth.refresh, file.upload ...
    entity = Column(String, nullable=True)
    meta = Column(JSON, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
