from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..dependencies.auth import require_admin
from ..dependencies.db import get_db
from ..services.audit import AuditLogFilters, distinct_actions, distinct_entities, list_audit_logs
from ..services.auth import AuthContext
from .serializers import serialize_audit_log

router = APIRouter(prefix="/admin/audit-logs", tags=["admin"])


@router.get("")
def list_logs(
    action: Optional[str] = Query(None),
    entity: Optional[str] = Query(None),
    user_id: Optional[uuid.UUID] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    logs, total = list_audit_logs(
        db,
        AuditLogFilters(
            action=action,
            entity=entity,
            user_id=user_id,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        ),
    )
    return {
        "items": [serialize_audit_log(log) for log in logs],
        "total": total,
        "unique_actions": distinct_actions(db),
        "unique_entities": distinct_entities(db),
    }
