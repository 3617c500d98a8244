from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from .base import Base
from .types import UTCDateTime, utcnow


class Document(Base):
    __tablename__ = "documents"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    letter_no = Column(String, nullable=False, index=True)
    subject = Column(String, nullable=True)
    from_name = Column(String, nullable=True)
    to_name = Column(String, nullable=True)
    division_id = Column(Uuid(as_uuid=True), ForeignKey("divisions.id"), nullable=False, index=True)
    # always the newest row of this document's status timeline
    current_status_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("statuses.id", use_alter=True, name="fk_documents_current_status_id"),
        nullable=True,
    )
    ocr_text = Column(Text, nullable=True)
    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow, index=True)

    division = relationship("Division", lazy="joined")
    created_by = relationship("User", foreign_keys=[created_by_id])
    current_status = relationship("Status", foreign_keys=[current_status_id], post_update=True, lazy="joined")
    statuses = relationship(
        "Status",
        foreign_keys="Status.document_id",
        back_populates="document",
        order_by="Status.created_at",
    )
    files = relationship("FileObject", back_populates="document", order_by="FileObject.created_at.desc()")
    assignments = relationship("Assignment", back_populates="document", order_by="Assignment.created_at.desc()")
