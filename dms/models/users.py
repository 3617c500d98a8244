from __future__ import annotations

import enum
import uuid

from sqlalchemy import Boolean, Column, Enum, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from .base import Base
from .types import UTCDateTime, utcnow


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(
        Enum(Role, name="user_role", values_callable=lambda enum: [member.value for member in enum]),
        nullable=False,
        default=Role.STAFF,
    )
    division_id = Column(Uuid(as_uuid=True), ForeignKey("divisions.id"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    division = relationship("Division", lazy="joined")
