from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..dependencies.auth import require_admin
from ..dependencies.db import get_db
from ..models import Document
from ..services.auth import AuthContext
from ..services.ocr import list_ocr_documents, run_ocr_batch, search_ocr_text

router = APIRouter(prefix="/admin/ocr", tags=["admin"])

SNIPPET_LENGTH = 200


class OcrRunPayload(BaseModel):
    document_ids: list[uuid.UUID]


def _serialize_ocr_document(document: Document, file_count: int, status: str) -> dict:
    text = document.ocr_text or ""
    return {
        "id": str(document.id),
        "letter_no": document.letter_no,
        "subject": document.subject,
        "division": {"id": str(document.division.id), "name": document.division.name},
        "file_count": file_count,
        "ocr_status": status,
        "ocr_preview": text[:SNIPPET_LENGTH] if text else None,
        "created_at": document.created_at.isoformat() if document.created_at else None,
    }


@router.get("/documents")
def ocr_documents(
    division_id: Optional[uuid.UUID] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows, total = list_ocr_documents(
        db, division_id=division_id, status=status.upper() if status else None, limit=limit, offset=offset
    )
    return {"items": [_serialize_ocr_document(*row) for row in rows], "total": total}


@router.post("/run")
def run_batch(
    payload: OcrRunPayload,
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = run_ocr_batch(db, context, payload.document_ids)
    return {
        "processed": [str(document_id) for document_id in result.processed],
        "skipped": [str(document_id) for document_id in result.skipped],
        "failed": [str(document_id) for document_id in result.failed],
    }


@router.get("/search")
def search(
    q: str = Query(""),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows, total = search_ocr_text(db, q, limit=limit, offset=offset)
    return {"items": [_serialize_ocr_document(*row) for row in rows], "total": total}
