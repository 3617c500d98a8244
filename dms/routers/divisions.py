from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..dependencies.auth import require_admin
from ..dependencies.db import get_db
from ..models import Division
from ..services.auth import AuthContext
from ..services.divisions import (
    create_division,
    delete_division,
    get_division_detail,
    list_divisions,
    rename_division,
)
from .serializers import serialize_user

router = APIRouter(prefix="/admin/divisions", tags=["admin"])


class DivisionPayload(BaseModel):
    name: str


def _serialize_division(division: Division, document_count: int = 0, user_count: int = 0) -> dict:
    return {
        "id": str(division.id),
        "name": division.name,
        "created_at": division.created_at.isoformat() if division.created_at else None,
        "document_count": document_count,
        "user_count": user_count,
    }


@router.get("")
def list_all_divisions(
    search: Optional[str] = Query(None),
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows = list_divisions(db, search=search)
    return {
        "items": [_serialize_division(division, documents, users) for division, documents, users in rows],
        "total": len(rows),
    }


@router.post("", status_code=201)
def add_division(
    payload: DivisionPayload,
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _serialize_division(create_division(db, context, payload.name))


@router.get("/{division_id}")
def get_division(
    division_id: uuid.UUID,
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    detail = get_division_detail(db, division_id)
    payload = _serialize_division(detail["division"], detail["document_count"], len(detail["users"]))
    payload["users"] = [serialize_user(user) for user in detail["users"]]
    payload["status_counts"] = detail["status_counts"]
    return payload


@router.patch("/{division_id}")
def update_division(
    division_id: uuid.UUID,
    payload: DivisionPayload,
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return _serialize_division(rename_division(db, context, division_id, payload.name))


@router.delete("/{division_id}", status_code=204)
def remove_division(
    division_id: uuid.UUID,
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    delete_division(db, context, division_id)
    return Response(status_code=204)
