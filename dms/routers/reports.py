from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..dependencies.auth import require_admin
from ..dependencies.db import get_db
from ..errors import ValidationError
from ..services.auth import AuthContext
from ..services.report_render import export_report
from ..services.reports import MONTHLY, ReportFilters, dashboard_stats, generate_report

router = APIRouter(prefix="/admin", tags=["admin"])


class ReportFiltersPayload(BaseModel):
    division_id: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    time_range: str = MONTHLY


class ExportPayload(BaseModel):
    format: str
    report_type: str
    filters: ReportFiltersPayload = ReportFiltersPayload()


ALL = "ALL"


def _is_all(value: Optional[str]) -> bool:
    return not value or value.strip().upper() == ALL


def _division_filter(value: Optional[str]) -> Optional[uuid.UUID]:
    if _is_all(value):
        return None
    try:
        return uuid.UUID(value.strip())
    except ValueError as exc:
        raise ValidationError("Invalid division_id") from exc


def _filters(division_id, status, date_from, date_to, time_range) -> ReportFilters:
    # "ALL" is the UI's sentinel for an absent filter
    return ReportFilters(
        division_id=_division_filter(division_id),
        status=None if _is_all(status) else status,
        date_from=date_from,
        date_to=date_to,
        time_range=(time_range or MONTHLY).upper(),
    )


@router.get("/dashboard")
def dashboard(
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return dashboard_stats(db)


@router.get("/reports/generate")
def generate(
    report_type: str = Query(...),
    division_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    time_range: str = Query(MONTHLY),
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    filters = _filters(division_id, status, date_from, date_to, time_range)
    return generate_report(db, report_type.upper(), filters).as_dict()


@router.post("/reports/export")
def export(
    payload: ExportPayload,
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    submitted = payload.filters
    filters = _filters(
        submitted.division_id,
        submitted.status,
        submitted.date_from,
        submitted.date_to,
        submitted.time_range,
    )
    content, media_type, filename = export_report(
        db,
        context,
        payload.report_type.upper(),
        filters,
        payload.format.upper(),
    )
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
