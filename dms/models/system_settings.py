from __future__ import annotations

from sqlalchemy import Column, ForeignKey, String, Uuid

from .base import Base
from .types import JSONType, UTCDateTime, utcnow

GLOBAL_SETTINGS_KEY = "global"


class SystemSettingsRecord(Base):
    __tablename__ = "system_settings"

    key = Column(String, primary_key=True, default=GLOBAL_SETTINGS_KEY)
    values = Column(JSONType, nullable=False, default=dict)
    updated_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    updated_at = Column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)
