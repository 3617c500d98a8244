from __future__ import annotations

import uuid

from sqlalchemy import Column, String, Uuid

from .base import Base
from .types import UTCDateTime, utcnow


class Division(Base):
    __tablename__ = "divisions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)
