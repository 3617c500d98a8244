from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..dependencies.auth import require_admin
from ..dependencies.db import get_db
from ..models import AssignmentStatusEnum
from ..services.assignments import FILTER_ALL, AssignmentFilters, list_assignments, update_assignment_status
from ..services.auth import AuthContext
from .serializers import serialize_assignment

router = APIRouter(prefix="/admin/assignments", tags=["admin"])


class AssignmentStatusPayload(BaseModel):
    status: AssignmentStatusEnum


@router.get("")
def list_all_assignments(
    filter: str = Query(FILTER_ALL),
    division_id: Optional[uuid.UUID] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    assignments, total = list_assignments(
        db,
        AssignmentFilters(bucket=filter.upper(), division_id=division_id, limit=limit, offset=offset),
    )
    return {
        "items": [serialize_assignment(assignment, include_document=True) for assignment in assignments],
        "total": total,
    }


@router.patch("/{assignment_id}")
def set_assignment_status(
    assignment_id: uuid.UUID,
    payload: AssignmentStatusPayload,
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    assignment = update_assignment_status(db, context, assignment_id, payload.status)
    return serialize_assignment(assignment)
