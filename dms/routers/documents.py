from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..dependencies.auth import require_auth
from ..dependencies.db import get_db
from ..errors import ValidationError
from ..services.assignments import create_assignment
from ..services.auth import AuthContext
from ..services.documents import (
    DocumentFilters,
    UploadedFile,
    UploadRequest,
    append_status,
    get_document_detail,
    latest_files,
    list_documents,
    read_upload,
    upload_document,
)
from ..services.ocr import run_ocr
from ..services.system_settings import load_settings
from .serializers import serialize_assignment, serialize_document, serialize_document_detail, serialize_status

logger = logging.getLogger(__name__)

router = APIRouter()


class StatusPayload(BaseModel):
    name: str
    note: Optional[str] = None


class AssignPayload(BaseModel):
    assignee_id: uuid.UUID
    due_date: Optional[datetime] = None
    note: Optional[str] = None


def parse_form_uuid(value: Optional[str], field: str) -> Optional[uuid.UUID]:
    if value is None or not value.strip():
        return None
    try:
        return uuid.UUID(value.strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid {field}") from exc


@router.post("/documents/upload", status_code=201)
def upload(
    letter_no: Optional[str] = Form(None),
    division_id: Optional[str] = Form(None),
    to_name: Optional[str] = Form(None),
    from_name: Optional[str] = Form(None),
    subject: Optional[str] = Form(None),
    status: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    uploaded = None
    if file is not None and file.filename:
        try:
            uploaded = UploadedFile(
                filename=file.filename,
                content_type=file.content_type or "application/octet-stream",
                data=read_upload(file.file, load_settings(db).max_upload_bytes),
            )
        finally:
            file.file.close()

    document = upload_document(
        db,
        context,
        UploadRequest(
            letter_no=letter_no or "",
            division_id=parse_form_uuid(division_id, "division_id"),
            file=uploaded,
            to_name=to_name or "",
            from_name=from_name or "",
            subject=subject or "",
            status=status or "",
        ),
    )
    return serialize_document(document)


@router.get("/documents")
def list_my_documents(
    division_id: Optional[uuid.UUID] = Query(None),
    status: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    documents, total = list_documents(
        db,
        context,
        DocumentFilters(
            division_id=division_id,
            status=status,
            q=q,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        ),
    )
    latest = latest_files(db, [document.id for document in documents])
    return {
        "items": [serialize_document(document, latest_file=latest.get(document.id)) for document in documents],
        "total": total,
    }


@router.get("/documents/{document_id}")
def get_document(
    document_id: uuid.UUID,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    return serialize_document_detail(get_document_detail(db, context, document_id))


@router.post("/documents/{document_id}/status", status_code=201)
def add_status(
    document_id: uuid.UUID,
    payload: StatusPayload,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    status = append_status(db, context, document_id, payload.name, payload.note)
    return serialize_status(status)


@router.post("/documents/{document_id}/assign", status_code=201)
def assign_document(
    document_id: uuid.UUID,
    payload: AssignPayload,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    assignment = create_assignment(
        db,
        context,
        document_id,
        assignee_id=payload.assignee_id,
        due_date=payload.due_date,
        note=payload.note,
    )
    return serialize_assignment(assignment)


@router.post("/documents/{document_id}/ocr")
def run_document_ocr(
    document_id: uuid.UUID,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    document = run_ocr(db, context, document_id)
    return {"id": str(document.id), "ocr_text": document.ocr_text}
