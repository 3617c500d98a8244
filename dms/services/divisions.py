"""Division registry."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import Conflict, NotFound, ValidationError
from ..models import Division, Document, Status, User
from .audit import audited
from .auth import AuthContext

logger = logging.getLogger(__name__)

MIN_DIVISION_NAME_LENGTH = 2


def _clean_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if len(cleaned) < MIN_DIVISION_NAME_LENGTH:
        raise ValidationError(f"Division name must be at least {MIN_DIVISION_NAME_LENGTH} characters")
    return cleaned


def _ensure_unique_name(db: Session, name: str, *, exclude_id: Optional[uuid.UUID] = None) -> None:
    query = db.query(Division).filter(func.lower(Division.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Division.id != exclude_id)
    if db.query(query.exists()).scalar():
        raise Conflict("Division name already exists")


def get_division_or_404(db: Session, division_id: uuid.UUID) -> Division:
    division = db.get(Division, division_id)
    if division is None:
        raise NotFound("Division not found")
    return division


def list_divisions(db: Session, *, search: Optional[str] = None) -> list[tuple[Division, int, int]]:
    """Return (division, document_count, user_count) ordered by name."""
    document_counts = (
        db.query(Document.division_id.label("division_id"), func.count(Document.id).label("documents"))
        .group_by(Document.division_id)
        .subquery()
    )
    user_counts = (
        db.query(User.division_id.label("division_id"), func.count(User.id).label("users"))
        .group_by(User.division_id)
        .subquery()
    )

    query = (
        db.query(
            Division,
            func.coalesce(document_counts.c.documents, 0),
            func.coalesce(user_counts.c.users, 0),
        )
        .select_from(Division)
        .outerjoin(document_counts, document_counts.c.division_id == Division.id)
        .outerjoin(user_counts, user_counts.c.division_id == Division.id)
    )
    if search and search.strip():
        query = query.filter(Division.name.ilike(f"%{search.strip()}%"))

    return [(division, int(documents), int(users)) for division, documents, users in query.order_by(Division.name.asc())]


def get_division_detail(db: Session, division_id: uuid.UUID) -> dict:
    division = get_division_or_404(db, division_id)

    users = db.query(User).filter(User.division_id == division.id).order_by(User.name.asc()).all()
    document_count = db.query(func.count(Document.id)).filter(Document.division_id == division.id).scalar() or 0
    status_rows = (
        db.query(Status.name, func.count(Document.id))
        .select_from(Status)
        .join(Document, Document.current_status_id == Status.id)
        .filter(Document.division_id == division.id)
        .group_by(Status.name)
        .all()
    )
    return {
        "division": division,
        "users": users,
        "document_count": int(document_count),
        "status_counts": {name: int(count) for name, count in status_rows},
    }


def create_division(db: Session, context: AuthContext, name: Optional[str]) -> Division:
    cleaned = _clean_name(name)
    _ensure_unique_name(db, cleaned)

    with audited(
        db,
        action="CREATE_DIVISION",
        entity="DIVISION",
        user_id=context.user_id,
        meta={"name": cleaned},
    ) as entry:
        division = Division(name=cleaned)
        db.add(division)
        db.flush()
        entry.entity_id = str(division.id)

    logger.info("division_created division_id=%s", division.id)
    return division


def rename_division(db: Session, context: AuthContext, division_id: uuid.UUID, name: Optional[str]) -> Division:
    division = get_division_or_404(db, division_id)
    cleaned = _clean_name(name)
    _ensure_unique_name(db, cleaned, exclude_id=division.id)

    with audited(
        db,
        action="UPDATE_DIVISION",
        entity="DIVISION",
        entity_id=division.id,
        user_id=context.user_id,
        meta={"from": division.name, "to": cleaned},
    ):
        division.name = cleaned

    db.refresh(division)
    return division


def delete_division(db: Session, context: AuthContext, division_id: uuid.UUID) -> None:
    division = get_division_or_404(db, division_id)

    has_documents = db.query(db.query(Document).filter(Document.division_id == division.id).exists()).scalar()
    has_users = db.query(db.query(User).filter(User.division_id == division.id).exists()).scalar()
    if has_documents or has_users:
        raise Conflict("Division still has documents or users")

    with audited(
        db,
        action="DELETE_DIVISION",
        entity="DIVISION",
        entity_id=division.id,
        user_id=context.user_id,
        meta={"name": division.name},
    ):
        db.delete(division)

    logger.info("division_deleted division_id=%s", division_id)


DEFAULT_DIVISION_NAMES = (
    "Administration division",
    "National secretary for early childhood development",
    "Women's bureau of Sri Lanka",
    "National committee on women",
    "Planning and IT division",
    "National child protection Authority",
    "Development Division",
    "Department of probation & child care services",
    "Procurement",
    "Ministry office",
    "Deputy ministry office",
    "Secretary office",
)


def ensure_divisions(db: Session, names: tuple[str, ...] = DEFAULT_DIVISION_NAMES) -> int:
    """Add any missing divisions by name. Returns how many were created; the caller commits."""
    existing = {name for (name,) in db.query(Division.name).all()}
    created = 0
    for name in names:
        if name not in existing:
            db.add(Division(name=name))
            created += 1
    db.flush()
    return created
