"""Read-only reporting over documents, statuses, assignments and the audit trail."""

from __future__ import annotations

import calendar
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, aliased, joinedload

from ..errors import ValidationError
from ..models import Assignment, AssignmentStatusEnum, AuditLog, Division, Document, Status, User

DOCUMENTS_BY_DIVISION = "DOCUMENTS_BY_DIVISION"
STATUS_SUMMARY = "STATUS_SUMMARY"
OVERDUE_ASSIGNMENTS = "OVERDUE_ASSIGNMENTS"
ACTIVITY_REPORT = "ACTIVITY_REPORT"
REPORT_TYPES = (DOCUMENTS_BY_DIVISION, STATUS_SUMMARY, OVERDUE_ASSIGNMENTS, ACTIVITY_REPORT)

WEEKLY = "WEEKLY"
MONTHLY = "MONTHLY"
CUSTOM = "CUSTOM"
TIME_RANGES = (WEEKLY, MONTHLY, CUSTOM)

REPORT_COLUMNS: dict[str, list[str]] = {
    DOCUMENTS_BY_DIVISION: ["division", "document_count"],
    STATUS_SUMMARY: ["status", "count"],
    OVERDUE_ASSIGNMENTS: ["letter_no", "division", "assignee", "due_date", "days_overdue"],
    ACTIVITY_REPORT: ["user", "activity_count"],
}

TOP_ACTIVE_USERS = 10
SYSTEM_ACTOR = "System"


@dataclass
class ReportFilters:
    division_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    time_range: str = MONTHLY

    def as_dict(self) -> dict[str, Any]:
        return {
            "division_id": str(self.division_id) if self.division_id else None,
            "status": self.status,
            "date_from": self.date_from.isoformat() if self.date_from else None,
            "date_to": self.date_to.isoformat() if self.date_to else None,
            "time_range": self.time_range,
        }


@dataclass
class ReportResult:
    report_type: str
    filters: dict[str, Any]
    columns: list[str]
    data: list[dict[str, Any]] = field(default_factory=list)
    summary: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "report_type": self.report_type,
            "filters": self.filters,
            "columns": self.columns,
            "data": self.data,
            "summary": self.summary,
        }


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def one_month_before(moment: datetime) -> datetime:
    """Same day of the previous calendar month, clamped to that month's length."""
    year, month = (moment.year - 1, 12) if moment.month == 1 else (moment.year, moment.month - 1)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def resolve_range(filters: ReportFilters, now: datetime) -> tuple[datetime, datetime]:
    if filters.time_range not in TIME_RANGES:
        raise ValidationError("Unknown time range")

    if filters.time_range == WEEKLY:
        start = now - timedelta(days=7)
    elif filters.time_range == MONTHLY:
        start = one_month_before(now)
    else:
        if filters.date_from is None:
            raise ValidationError("date_from is required for a custom time range")
        start = _utc(filters.date_from)

    end = _utc(filters.date_to) if filters.date_to else now
    if start > end:
        raise ValidationError("date_from must not be after date_to")
    return start, end


def _documents_by_division(db: Session, filters: ReportFilters, start: datetime, end: datetime) -> ReportResult:
    query = (
        db.query(Division.name, func.count(Document.id))
        .select_from(Document)
        .join(Division, Division.id == Document.division_id)
        .filter(Document.created_at >= start, Document.created_at <= end)
    )
    if filters.division_id:
        query = query.filter(Document.division_id == filters.division_id)
    if filters.status:
        query = query.join(Status, Status.id == Document.current_status_id).filter(Status.name == filters.status)

    rows = query.group_by(Division.name).order_by(func.count(Document.id).desc(), Division.name.asc()).all()
    data = [{"division": name, "document_count": int(count)} for name, count in rows]
    return ReportResult(
        report_type=DOCUMENTS_BY_DIVISION,
        filters=filters.as_dict(),
        columns=REPORT_COLUMNS[DOCUMENTS_BY_DIVISION],
        data=data,
        summary={
            "total_documents": sum(row["document_count"] for row in data),
            "divisions_count": len(data),
        },
    )


def _status_summary(db: Session, filters: ReportFilters, start: datetime, end: datetime) -> ReportResult:
    query = db.query(Status.name, func.count(Status.id)).filter(Status.created_at >= start, Status.created_at <= end)
    if filters.division_id:
        query = query.join(Document, Document.id == Status.document_id).filter(
            Document.division_id == filters.division_id
        )

    rows = query.group_by(Status.name).order_by(func.count(Status.id).desc(), Status.name.asc()).all()
    data = [{"status": name, "count": int(count)} for name, count in rows]
    return ReportResult(
        report_type=STATUS_SUMMARY,
        filters=filters.as_dict(),
        columns=REPORT_COLUMNS[STATUS_SUMMARY],
        data=data,
        summary={
            "total_status_changes": sum(row["count"] for row in data),
            "unique_statuses": len(data),
        },
    )


def days_overdue(due_date: datetime, now: datetime) -> int:
    return math.ceil((now - _utc(due_date)).total_seconds() / 86400)


def _overdue_assignments(db: Session, filters: ReportFilters, now: datetime) -> ReportResult:
    query = db.query(Assignment).filter(
        Assignment.status == AssignmentStatusEnum.OPEN,
        Assignment.due_date.isnot(None),
        Assignment.due_date < now,
    )
    if filters.division_id:
        query = query.join(Document, Document.id == Assignment.document_id).filter(
            Document.division_id == filters.division_id
        )

    assignments = (
        query.options(
            joinedload(Assignment.document).joinedload(Document.division),
            joinedload(Assignment.assignee),
        )
        .order_by(Assignment.due_date.asc())
        .all()
    )
    data = [
        {
            "letter_no": assignment.document.letter_no,
            "division": assignment.document.division.name,
            "assignee": assignment.assignee.name,
            "due_date": assignment.due_date.date().isoformat(),
            "days_overdue": days_overdue(assignment.due_date, now),
        }
        for assignment in assignments
    ]
    average = round(sum(row["days_overdue"] for row in data) / len(data)) if data else 0
    return ReportResult(
        report_type=OVERDUE_ASSIGNMENTS,
        filters=filters.as_dict(),
        columns=REPORT_COLUMNS[OVERDUE_ASSIGNMENTS],
        data=data,
        summary={"total_overdue": len(data), "average_days_overdue": average},
    )


def _activity_report(db: Session, filters: ReportFilters, start: datetime, end: datetime) -> ReportResult:
    in_range = (AuditLog.created_at >= start, AuditLog.created_at <= end)

    def count_action(action: str) -> int:
        return db.query(func.count(AuditLog.id)).filter(*in_range, AuditLog.action == action).scalar() or 0

    actor = aliased(User)
    activity = func.count(AuditLog.id)
    rows = (
        db.query(AuditLog.user_id, actor.name, activity)
        .select_from(AuditLog)
        .outerjoin(actor, actor.id == AuditLog.user_id)
        .filter(*in_range)
        .group_by(AuditLog.user_id, actor.name)
        .order_by(activity.desc())
        .limit(TOP_ACTIVE_USERS)
        .all()
    )
    data = [
        {"user": (name or "Unknown") if user_id else SYSTEM_ACTOR, "activity_count": int(count)}
        for user_id, name, count in rows
    ]

    uploads = count_action("UPLOAD")
    downloads = count_action("DOWNLOAD")
    logins = count_action("LOGIN")
    return ReportResult(
        report_type=ACTIVITY_REPORT,
        filters=filters.as_dict(),
        columns=REPORT_COLUMNS[ACTIVITY_REPORT],
        data=data,
        summary={
            "total_uploads": uploads,
            "total_downloads": downloads,
            "total_logins": logins,
            "total_activities": uploads + downloads + logins,
        },
    )


def generate_report(
    db: Session,
    report_type: str,
    filters: ReportFilters,
    *,
    now: Optional[datetime] = None,
) -> ReportResult:
    if report_type not in REPORT_TYPES:
        raise ValidationError("Unknown report type")
    now = now or datetime.now(timezone.utc)

    if report_type == OVERDUE_ASSIGNMENTS:
        return _overdue_assignments(db, filters, now)

    start, end = resolve_range(filters, now)
    if report_type == DOCUMENTS_BY_DIVISION:
        return _documents_by_division(db, filters, start, end)
    if report_type == STATUS_SUMMARY:
        return _status_summary(db, filters, start, end)
    return _activity_report(db, filters, start, end)


# --- Dashboard -------------------------------------------------------------
def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(now: datetime) -> datetime:
    # weeks start on Sunday; weekday() is 0 for Monday
    days_since_sunday = (now.weekday() + 1) % 7
    return start_of_day(now) - timedelta(days=days_since_sunday)


def dashboard_stats(db: Session, *, now: Optional[datetime] = None) -> dict[str, Any]:
    now = _utc(now) if now else datetime.now(timezone.utc)
    today = start_of_day(now)
    week = start_of_week(now)

    def documents_since(moment: datetime) -> int:
        return db.query(func.count(Document.id)).filter(Document.created_at >= moment).scalar() or 0

    def downloads_since(moment: datetime) -> int:
        return (
            db.query(func.count(AuditLog.id))
            .filter(AuditLog.action == "DOWNLOAD", AuditLog.created_at >= moment)
            .scalar()
            or 0
        )

    status_rows = (
        db.query(Status.name, func.count(Document.id))
        .select_from(Status)
        .join(Document, Document.current_status_id == Status.id)
        .group_by(Status.name)
        .all()
    )
    division_rows = (
        db.query(Division.id, Division.name, func.count(Document.id))
        .select_from(Division)
        .join(Document, Document.division_id == Division.id)
        .group_by(Division.id, Division.name)
        .order_by(func.count(Document.id).desc())
        .all()
    )
    overdue = (
        db.query(func.count(Assignment.id))
        .filter(
            Assignment.status == AssignmentStatusEnum.OPEN,
            Assignment.due_date.isnot(None),
            Assignment.due_date < now,
        )
        .scalar()
    )

    return {
        "total_documents": db.query(func.count(Document.id)).scalar() or 0,
        "status_counts": {name: int(count) for name, count in status_rows},
        "overdue_assignments": overdue or 0,
        "documents_today": documents_since(today),
        "documents_this_week": documents_since(week),
        "downloads_today": downloads_since(today),
        "downloads_this_week": downloads_since(week),
        "active_users": db.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar() or 0,
        "documents_by_division": [
            {"division_id": str(division_id), "division_name": name, "count": int(count)}
            for division_id, name, count in division_rows
        ],
    }
