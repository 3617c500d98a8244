from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Column, Enum as SAEnum, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship

from .base import Base
from .types import UTCDateTime, utcnow


class AssignmentStatusEnum(str, enum.Enum):
    OPEN = "OPEN"
    DONE = "DONE"


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    document_id = Column(Uuid(as_uuid=True), ForeignKey("documents.id"), nullable=False, index=True)
    assignee_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    assigned_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    due_date = Column(UTCDateTime(), nullable=True, index=True)
    note = Column(Text, nullable=True)
    status = Column(
        SAEnum(AssignmentStatusEnum, name="assignment_status"),
        nullable=False,
        default=AssignmentStatusEnum.OPEN,
    )
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    document = relationship("Document", back_populates="assignments")
    assignee = relationship("User", foreign_keys=[assignee_id])
    assigned_by = relationship("User", foreign_keys=[assigned_by_id])

    def is_overdue(self, now: datetime) -> bool:
        # strict: a due date equal to now is not yet overdue
        return (
            self.status == AssignmentStatusEnum.OPEN
            and self.due_date is not None
            and self.due_date < now
        )
