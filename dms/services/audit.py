"""Audit trail: the single place where audit rows are written.

Mutating services wrap their writes in :func:`audited` so the domain change and
its audit row are committed together; if the audit row cannot be persisted the
whole operation is rolled back.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..errors import AuditWriteError, Conflict
from ..models import AuditLog
from .metrics import record_audit_event

logger = logging.getLogger(__name__)


@dataclass
class AuditEntry:
    action: str
    entity: str
    user_id: Optional[uuid.UUID] = None
    entity_id: Optional[str] = None
    meta: dict[str, Any] = field(default_factory=dict)


def _build_log(entry: AuditEntry) -> AuditLog:
    return AuditLog(
        action=entry.action,
        entity=entry.entity,
        entity_id=str(entry.entity_id) if entry.entity_id is not None else None,
        user_id=entry.user_id,
        meta=dict(entry.meta or {}),
    )


@contextmanager
def audited(
    db: Session,
    *,
    action: str,
    entity: str,
    user_id: Optional[uuid.UUID],
    entity_id: Any = None,
    meta: Optional[dict[str, Any]] = None,
) -> Iterator[AuditEntry]:
    """Run a mutation and commit it together with its audit row.

    The yielded :class:`AuditEntry` may be completed inside the block, e.g. with
    an ``entity_id`` that only exists after a flush.
    """
    entry = AuditEntry(
        action=action,
        entity=entity,
        user_id=user_id,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    try:
        yield entry
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("audited_write_conflict action=%s entity=%s error=%s", action, entity, exc.orig)
        raise Conflict("Conflicting record") from exc
    except Exception:
        db.rollback()
        raise

    try:
        db.add(_build_log(entry))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("audit_write_failed action=%s entity=%s entity_id=%s", action, entity, entry.entity_id)
        raise AuditWriteError() from exc

    record_audit_event(entry.action)
    logger.info(
        "audit action=%s entity=%s entity_id=%s user_id=%s",
        entry.action,
        entry.entity,
        entry.entity_id,
        entry.user_id,
    )


def record_event(
    db: Session,
    *,
    action: str,
    entity: str,
    user_id: Optional[uuid.UUID],
    entity_id: Any = None,
    meta: Optional[dict[str, Any]] = None,
) -> None:
    """Append an audit row for an action that has no domain write of its own."""
    with audited(db, action=action, entity=entity, user_id=user_id, entity_id=entity_id, meta=meta):
        pass


@dataclass
class AuditLogFilters:
    action: Optional[str] = None
    entity: Optional[str] = None
    user_id: Optional[uuid.UUID] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = 100
    offset: int = 0


def list_audit_logs(db: Session, filters: AuditLogFilters) -> tuple[list[AuditLog], int]:
    query = db.query(AuditLog)
    if filters.action:
        query = query.filter(AuditLog.action == filters.action)
    if filters.entity:
        query = query.filter(AuditLog.entity == filters.entity)
    if filters.user_id:
        query = query.filter(AuditLog.user_id == filters.user_id)
    if filters.date_from:
        query = query.filter(AuditLog.created_at >= filters.date_from)
    if filters.date_to:
        query = query.filter(AuditLog.created_at <= filters.date_to)

    total = query.count()
    logs = (
        query.options(joinedload(AuditLog.user))
        .order_by(AuditLog.created_at.desc())
        .offset(filters.offset)
        .limit(filters.limit)
        .all()
    )
    return logs, total


def distinct_actions(db: Session) -> list[str]:
    return [row[0] for row in db.query(AuditLog.action).distinct().order_by(AuditLog.action.asc()).all()]


def distinct_entities(db: Session) -> list[str]:
    return [row[0] for row in db.query(AuditLog.entity).distinct().order_by(AuditLog.entity.asc()).all()]
