"""Assignment tracker: follow-up work items attached to documents."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ..errors import NotFound, UpstreamUnavailable, ValidationError
from ..models import Assignment, AssignmentStatusEnum, Document, Role, User
from .audit import audited
from .auth import AuthContext
from .documents import get_accessible_document
from .email import assignment_notice, get_mailer
from .system_settings import load_settings

logger = logging.getLogger(__name__)

FILTER_ALL = "ALL"
FILTER_OPEN = "OPEN"
FILTER_OVERDUE = "OVERDUE"
FILTER_DONE = "DONE"
ASSIGNMENT_FILTERS = (FILTER_ALL, FILTER_OPEN, FILTER_OVERDUE, FILTER_DONE)


@dataclass
class AssignmentFilters:
    bucket: str = FILTER_ALL
    division_id: Optional[uuid.UUID] = None
    limit: int = 100
    offset: int = 0


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def create_assignment(
    db: Session,
    context: AuthContext,
    document_id: uuid.UUID,
    *,
    assignee_id: uuid.UUID,
    due_date: Optional[datetime] = None,
    note: Optional[str] = None,
) -> Assignment:
    document = get_accessible_document(db, context, document_id)

    assignee = db.get(User, assignee_id)
    if assignee is None:
        raise NotFound("Assignee not found")

    due = _as_utc(due_date)
    with audited(
        db,
        action="CREATE_ASSIGNMENT",
        entity="ASSIGNMENT",
        user_id=context.user_id,
        meta={
            "document_id": str(document.id),
            "assignee_id": str(assignee.id),
            "due_date": due.isoformat() if due else None,
        },
    ) as entry:
        assignment = Assignment(
            document_id=document.id,
            assignee_id=assignee.id,
            assigned_by_id=context.user_id,
            due_date=due,
            note=note,
            status=AssignmentStatusEnum.OPEN,
        )
        db.add(assignment)
        db.flush()
        entry.entity_id = str(assignment.id)

    logger.info("assignment_created assignment_id=%s document_id=%s assignee_id=%s", assignment.id, document.id, assignee.id)
    _notify_assignee(db, assignment, document, assignee, context)
    return assignment


def _notify_assignee(db: Session, assignment: Assignment, document: Document, assignee: User, context: AuthContext) -> None:
    system = load_settings(db)
    if not (system.notifications_enabled and system.email_notifications):
        return

    notice = assignment_notice(
        to=assignee.email,
        assigned_by=context.name,
        letter_no=document.letter_no,
        subject=document.subject,
        due_date=assignment.due_date,
        note=assignment.note,
    )
    try:
        get_mailer().send(notice)
    except UpstreamUnavailable:
        logger.warning("assignment_notification_failed assignment_id=%s", assignment.id, exc_info=True)


def update_assignment_status(
    db: Session,
    context: AuthContext,
    assignment_id: uuid.UUID,
    status: AssignmentStatusEnum,
) -> Assignment:
    """Set the status in place. Setting the current value again is not an error."""
    context.ensure_role(Role.ADMIN)

    assignment = db.get(Assignment, assignment_id)
    if assignment is None:
        raise NotFound("Assignment not found")

    with audited(
        db,
        action="UPDATE_ASSIGNMENT",
        entity="ASSIGNMENT",
        entity_id=assignment.id,
        user_id=context.user_id,
        meta={"status": status.value, "document_id": str(assignment.document_id)},
    ):
        assignment.status = status

    db.refresh(assignment)
    return assignment


def list_assignments(
    db: Session,
    filters: AssignmentFilters,
    *,
    now: Optional[datetime] = None,
) -> tuple[list[Assignment], int]:
    if filters.bucket not in ASSIGNMENT_FILTERS:
        raise ValidationError("Unknown assignment filter")
    now = now or datetime.now(timezone.utc)

    query = db.query(Assignment)
    if filters.bucket == FILTER_OVERDUE:
        query = query.filter(
            Assignment.status == AssignmentStatusEnum.OPEN,
            Assignment.due_date.isnot(None),
            Assignment.due_date < now,
        )
    elif filters.bucket == FILTER_OPEN:
        query = query.filter(Assignment.status == AssignmentStatusEnum.OPEN)
    elif filters.bucket == FILTER_DONE:
        query = query.filter(Assignment.status == AssignmentStatusEnum.DONE)

    if filters.division_id:
        query = query.join(Document, Document.id == Assignment.document_id).filter(
            Document.division_id == filters.division_id
        )

    total = query.count()
    assignments = (
        query.options(
            joinedload(Assignment.document).joinedload(Document.division),
            joinedload(Assignment.document).joinedload(Document.current_status),
            joinedload(Assignment.assignee),
            joinedload(Assignment.assigned_by),
        )
        .order_by(Assignment.due_date.asc().nulls_last(), Assignment.created_at.desc())
        .offset(filters.offset)
        .limit(filters.limit)
        .all()
    )
    return assignments, total

