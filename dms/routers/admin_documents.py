from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..dependencies.auth import require_admin
from ..dependencies.db import get_db
from ..services.auth import AuthContext
from ..services.documents import DocumentFilters, change_division, document_counts, list_documents
from .serializers import serialize_document

router = APIRouter(prefix="/admin/documents", tags=["admin"])


class ChangeDivisionPayload(BaseModel):
    division_id: Optional[uuid.UUID] = None


@router.get("")
def list_all_documents(
    division_id: Optional[uuid.UUID] = Query(None),
    status: Optional[str] = Query(None),
    letter_no: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    documents, total = list_documents(
        db,
        context,
        DocumentFilters(
            division_id=division_id,
            status=status,
            letter_no=letter_no,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        ),
    )
    counts = document_counts(db, [document.id for document in documents])
    return {
        "items": [serialize_document(document, counts=counts[document.id]) for document in documents],
        "total": total,
    }


@router.patch("/{document_id}")
def update_document_division(
    document_id: uuid.UUID,
    payload: ChangeDivisionPayload,
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    document = change_division(db, context, document_id, payload.division_id)
    return serialize_document(document)
