from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from .base import Base
from .types import JSONType, UTCDateTime, utcnow


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    action = Column(String, nullable=False, index=True)  # "LOGIN", "UPLOAD", "STATUS_CHANGE", ...
    entity = Column(String, nullable=False, index=True)  # "DOCUMENT", "USER", "ASSIGNMENT", ...
    entity_id = Column(String, nullable=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    meta = Column(JSONType, nullable=False, default=dict)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow, index=True)

    user = relationship("User")
