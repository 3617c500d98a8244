from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from .base import Base
from .types import UTCDateTime, utcnow


class Status(Base):
    """One entry of a document's append-only status timeline."""

    __tablename__ = "statuses"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    note = Column(Text, nullable=True)
    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow, index=True)

    document = relationship("Document", foreign_keys=[document_id], back_populates="statuses")
    created_by = relationship("User", foreign_keys=[created_by_id])
