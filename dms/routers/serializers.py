"""JSON shapes shared by the document, assignment and admin routers."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..models import Assignment, AuditLog, Division, Document, FileObject, Status, User


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_user_ref(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": str(user.id), "name": user.name, "email": user.email}


def serialize_division_ref(division: Optional[Division]) -> Optional[dict]:
    if division is None:
        return None
    return {"id": str(division.id), "name": division.name}


def serialize_user(user: User) -> dict:
    return {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "division_id": str(user.division_id) if user.division_id else None,
        "division": serialize_division_ref(user.division),
        "is_active": user.is_active,
        "created_at": _iso(user.created_at),
    }


def serialize_status(status: Optional[Status]) -> Optional[dict]:
    if status is None:
        return None
    return {
        "id": str(status.id),
        "name": status.name,
        "note": status.note,
        "created_by": serialize_user_ref(status.created_by),
        "created_at": _iso(status.created_at),
    }


def serialize_file(file_obj: FileObject) -> dict:
    return {
        "id": str(file_obj.id),
        "original_name": file_obj.original_name,
        "mime_type": file_obj.mime_type,
        "size_bytes": file_obj.size_bytes,
        "uploaded_by": serialize_user_ref(file_obj.uploaded_by),
        "created_at": _iso(file_obj.created_at),
    }


def serialize_assignment(assignment: Assignment, *, include_document: bool = False) -> dict:
    payload = {
        "id": str(assignment.id),
        "document_id": str(assignment.document_id),
        "assignee": serialize_user_ref(assignment.assignee),
        "assigned_by": serialize_user_ref(assignment.assigned_by),
        "due_date": _iso(assignment.due_date),
        "note": assignment.note,
        "status": assignment.status.value,
        "created_at": _iso(assignment.created_at),
    }
    if include_document:
        document = assignment.document
        payload["document"] = {
            "id": str(document.id),
            "letter_no": document.letter_no,
            "subject": document.subject,
            "division": serialize_division_ref(document.division),
            "current_status": document.current_status.name if document.current_status else None,
        }
    return payload


def serialize_document(
    document: Document,
    *,
    counts: Optional[dict[str, int]] = None,
    latest_file: Optional[FileObject] = None,
) -> dict:
    payload = {
        "id": str(document.id),
        "letter_no": document.letter_no,
        "subject": document.subject,
        "from_name": document.from_name,
        "to_name": document.to_name,
        "division": serialize_division_ref(document.division),
        "current_status": serialize_status(document.current_status),
        "created_at": _iso(document.created_at),
    }
    if counts is not None:
        payload["file_count"] = counts.get("files", 0)
        payload["assignment_count"] = counts.get("assignments", 0)
    if latest_file is not None:
        payload["latest_file"] = serialize_file(latest_file)
    return payload


def serialize_document_detail(document: Document) -> dict:
    payload = serialize_document(document)
    payload.update(
        {
            "created_by": serialize_user_ref(document.created_by),
            "ocr_text": document.ocr_text,
            "statuses": [serialize_status(status) for status in document.statuses],
            "files": [serialize_file(file_obj) for file_obj in document.files],
            "assignments": [serialize_assignment(assignment) for assignment in document.assignments],
        }
    )
    return payload


def serialize_audit_log(log: AuditLog) -> dict:
    return {
        "id": str(log.id),
        "action": log.action,
        "entity": log.entity,
        "entity_id": log.entity_id,
        "user": serialize_user_ref(log.user),
        "meta": log.meta or {},
        "created_at": _iso(log.created_at),
    }
