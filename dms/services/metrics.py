from __future__ import annotations

import uuid

from prometheus_client import Counter


DOCUMENTS_UPLOADED_COUNTER = Counter(
    "dms_documents_uploaded_total",
    "Documents uploaded per division",
    ["division_id"],
)

STATUS_CHANGES_COUNTER = Counter(
    "dms_status_changes_total",
    "Status entries appended per division",
    ["division_id"],
)

LOGIN_ATTEMPTS_COUNTER = Counter(
    "dms_login_attempts_total",
    "Login attempts by outcome",
    ["outcome"],
)

AUDIT_EVENTS_COUNTER = Counter(
    "dms_audit_events_total",
    "Audit rows written by action",
    ["action"],
)


def _division_label(division_id: uuid.UUID | None) -> str:
    return str(division_id) if division_id else "unknown"


def record_document_uploaded(division_id: uuid.UUID | None) -> None:
    DOCUMENTS_UPLOADED_COUNTER.labels(division_id=_division_label(division_id)).inc()


def record_status_change(division_id: uuid.UUID | None) -> None:
    STATUS_CHANGES_COUNTER.labels(division_id=_division_label(division_id)).inc()


def record_login_attempt(success: bool) -> None:
    LOGIN_ATTEMPTS_COUNTER.labels(outcome="success" if success else "failure").inc()


def record_audit_event(action: str) -> None:
    AUDIT_EVENTS_COUNTER.labels(action=action).inc()
