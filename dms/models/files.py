from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, Column, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from .base import Base
from .types import UTCDateTime, utcnow


class FileObject(Base):
    __tablename__ = "file_objects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.id"), nullable=False, index=True)
    original_name = Column(String, nullable=False)
    mime_type = Column(String, nullable=False)
    size_bytes = Column(BigInteger, nullable=False)
    storage_key = Column(String, nullable=False, unique=True)
    uploaded_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    document = relationship("Document", back_populates="files")
    uploaded_by = relationship("User", foreign_keys=[uploaded_by_id])
