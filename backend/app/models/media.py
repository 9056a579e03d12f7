# app/models/media.py
from sqlalchemy import Column, Integer, String, ForeignKey, BigInteger, Boolean, DateTime, Float, JSON, func
from sqlalchemy.orm import relationship
import enum
from .base import Base

class FileCategory(str, enum.Enum):
    VIDEO = "VIDEO"
    IMAGE = "IMAGE"
    DOCUMENT = "DOCUMENT"
    OTHER = "OTHER"

class FileVisibility(str, enum.Enum):
    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    PROTECTED = "PROTECTED"

class File(Base):
    __tablename__ = "files"

    id = Column(String(36), primary_key=True)
    filename = Column(String, nullable=False)            # name on disk
    original_filename = Column(String, nullable=False)
    mime_type = Column(String, nullable=False)
    size = Column(BigInteger, nullable=False)
    path = Column(String, nullable=False)
    url = Column(String, nullable=False)
    key = Column(String, nullable=False)                 # path relative to the upload root
    category = Column(String, default=FileCategory.OTHER.value, index=True, nullable=False)
    visibility = Column(String, default=FileVisibility.PRIVATE.value, nullable=False)
    checksum = Column(String(64), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    uploader_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    # references into the course catalog
    course_id = Column(String, nullable=True)
    lesson_id = Column(String, nullable=True)
    blog_post_id = Column(String, nullable=True)

    access_count = Column(Integer, default=0, nullable=False)
    last_accessed_at = Column(DateTime(timezone=True), nullable=True)

    duration = Column(Float, nullable=True)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    meta = Column(JSON, nullable=True)
    is_processed = Column(Boolean, default=False, nullable=False)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    hls_status = Column(String, nullable=True)           # pending / ready / failed
    hls_manifest_path = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    uploader = relationship("User", back_populates="files")

    def __str__(self):
        return self.original_filename
