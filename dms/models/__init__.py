from .assignments import Assignment, AssignmentStatusEnum
from .audit_logs import AuditLog
from .base import Base
from .divisions import Division
from .documents import Document
from .files import FileObject
from .statuses import Status
from .system_settings import GLOBAL_SETTINGS_KEY, SystemSettingsRecord
from .users import Role, User

__all__ = [
    "Assignment",
    "AssignmentStatusEnum",
    "AuditLog",
    "Base",
    "Division",
    "Document",
    "FileObject",
    "GLOBAL_SETTINGS_KEY",
    "Role",
    "Status",
    "SystemSettingsRecord",
    "User",
]
