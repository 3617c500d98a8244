"""Persisted system settings (status workflow suggestions, upload limits, flags)."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models import GLOBAL_SETTINGS_KEY, SystemSettingsRecord
from .audit import audited

logger = logging.getLogger(__name__)

DEFAULT_STATUS_WORKFLOW = [
    "RECEIVED",
    "UNDER REVIEW",
    "PENDING APPROVAL",
    "APPROVED",
    "REJECTED",
    "FORWARDED",
    "COMPLETED",
    "ARCHIVED",
]


class SystemSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status_workflow: list[str] = Field(default_factory=lambda: list(DEFAULT_STATUS_WORKFLOW))
    file_upload_max_size: int = Field(default=10, ge=1)  # MB
    allowed_file_types: list[str] = Field(
        default_factory=lambda: [".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png"]
    )
    retention_period_days: int = Field(default=365, ge=1)
    notifications_enabled: bool = True
    email_notifications: bool = False
    system_maintenance: bool = False

    @property
    def max_upload_bytes(self) -> int:
        return self.file_upload_max_size * 1024 * 1024

    def allows_extension(self, extension: str) -> bool:
        allowed = {value.lower() if value.startswith(".") else f".{value.lower()}" for value in self.allowed_file_types}
        return extension.lower() in allowed


class SettingsPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status_workflow: Optional[list[str]] = None
    file_upload_max_size: Optional[int] = Field(default=None, ge=1)
    allowed_file_types: Optional[list[str]] = None
    retention_period_days: Optional[int] = Field(default=None, ge=1)
    notifications_enabled: Optional[bool] = None
    email_notifications: Optional[bool] = None
    system_maintenance: Optional[bool] = None


def load_settings(db: Session) -> SystemSettings:
    record = db.get(SystemSettingsRecord, GLOBAL_SETTINGS_KEY)
    if record is None:
        return SystemSettings()
    return SystemSettings(**(record.values or {}))


def update_settings(db: Session, changes: dict[str, Any], *, actor_id: uuid.UUID) -> SystemSettings:
    try:
        patch = SettingsPatch(**changes)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid setting {location}: {first.get('msg')}") from exc

    provided = patch.model_dump(exclude_unset=True)
    nulls = sorted(key for key, value in provided.items() if value is None)
    if nulls:
        raise ValidationError(f"Invalid setting {nulls[0]}: value required")
    current = load_settings(db)
    merged = SystemSettings(**{**current.model_dump(), **provided})

    with audited(
        db,
        action="UPDATE_SETTINGS",
        entity="SETTINGS",
        user_id=actor_id,
        meta={"changed": sorted(provided.keys())},
    ):
        record = db.get(SystemSettingsRecord, GLOBAL_SETTINGS_KEY)
        if record is None:
            record = SystemSettingsRecord(key=GLOBAL_SETTINGS_KEY)
            db.add(record)
        record.values = merged.model_dump()
        record.updated_by_id = actor_id

    logger.info("settings_updated changed=%s", ",".join(sorted(provided.keys())))
    return merged
