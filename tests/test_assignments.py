from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from dms.db.session import SessionLocal
from dms.errors import UpstreamUnavailable
from dms.models import Assignment, AssignmentStatusEnum, AuditLog
from dms.services.assignments import AssignmentFilters, list_assignments


@pytest.fixture()
def staff_document(staff_user, staff_headers, upload, mock_s3_bucket):
    response = upload(staff_headers, staff_user.division_id, letter_no="PLAN/9")
    assert response.status_code == 201
    return response.json()


def _assign(client, headers, document_id, assignee_id, due_date=None, note=None):
    payload = {"assignee_id": str(assignee_id)}
    if due_date is not None:
        payload["due_date"] = due_date.isoformat()
    if note is not None:
        payload["note"] = note
    return client.post(f"/documents/{document_id}/assign", json=payload, headers=headers)


@pytest.mark.integration
def test_overdue_assignment_can_be_marked_done_twice(client, admin_headers, staff_user, staff_headers, staff_document):
    due = datetime.now(timezone.utc) - timedelta(days=2)
    created = _assign(client, staff_headers, staff_document["id"], staff_user.id, due, "Reply by Friday")
    assert created.status_code == 201
    assignment = created.json()
    assert assignment["status"] == "OPEN"
    assert assignment["assigned_by"]["id"] == str(staff_user.id)

    overdue = client.get("/admin/assignments?filter=OVERDUE", headers=admin_headers).json()
    assert [item["id"] for item in overdue["items"]] == [assignment["id"]]
    assert overdue["items"][0]["document"]["letter_no"] == "PLAN/9"

    for _ in range(2):
        response = client.patch(
            f"/admin/assignments/{assignment['id']}",
            json={"status": "DONE"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "DONE"

    assert client.get("/admin/assignments?filter=OVERDUE", headers=admin_headers).json()["total"] == 0
    assert client.get("/admin/assignments?filter=DONE", headers=admin_headers).json()["total"] == 1

    with SessionLocal() as session:
        updates = session.query(AuditLog).filter(AuditLog.action == "UPDATE_ASSIGNMENT").all()
        assert len(updates) == 2
        assert all(log.meta == {"status": "DONE", "document_id": staff_document["id"]} for log in updates)

        created_log = session.query(AuditLog).filter(AuditLog.action == "CREATE_ASSIGNMENT").one()
        assert created_log.meta["document_id"] == staff_document["id"]
        assert created_log.meta["assignee_id"] == str(staff_user.id)


@pytest.mark.integration
def test_assignment_to_unknown_user_is_not_found(client, staff_headers, staff_document):
    response = _assign(client, staff_headers, staff_document["id"], "00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
    assert response.json()["error"] == "Assignee not found"


@pytest.mark.integration
def test_staff_cannot_update_assignment_status(client, staff_user, staff_headers, staff_document):
    assignment = _assign(client, staff_headers, staff_document["id"], staff_user.id).json()
    response = client.patch(f"/admin/assignments/{assignment['id']}", json={"status": "DONE"}, headers=staff_headers)
    assert response.status_code == 403


@pytest.mark.integration
def test_invalid_assignment_status_is_rejected(client, admin_headers, staff_user, staff_headers, staff_document):
    assignment = _assign(client, staff_headers, staff_document["id"], staff_user.id).json()
    response = client.patch(f"/admin/assignments/{assignment['id']}", json={"status": "LATER"}, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.integration
def test_oversight_list_orders_by_due_date_with_missing_dates_last(
    client, admin_headers, staff_user, staff_headers, staff_document
):
    now = datetime.now(timezone.utc)
    undated = _assign(client, staff_headers, staff_document["id"], staff_user.id).json()
    later = _assign(client, staff_headers, staff_document["id"], staff_user.id, now + timedelta(days=5)).json()
    sooner = _assign(client, staff_headers, staff_document["id"], staff_user.id, now + timedelta(days=1)).json()

    listed = client.get("/admin/assignments", headers=admin_headers).json()
    assert [item["id"] for item in listed["items"]] == [sooner["id"], later["id"], undated["id"]]
    assert listed["total"] == 3


@pytest.mark.integration
def test_oversight_list_filters_by_division(client, admin_headers, other_division, staff_user, staff_headers, staff_document):
    _assign(client, staff_headers, staff_document["id"], staff_user.id)

    own = client.get(f"/admin/assignments?division_id={staff_user.division_id}", headers=admin_headers).json()
    other = client.get(f"/admin/assignments?division_id={other_division.id}", headers=admin_headers).json()
    assert own["total"] == 1
    assert other["total"] == 0


@pytest.mark.integration
def test_due_date_equal_to_now_is_not_overdue(client, staff_user, staff_headers, staff_document):
    due = datetime.now(timezone.utc) + timedelta(hours=1)
    _assign(client, staff_headers, staff_document["id"], staff_user.id, due)

    with SessionLocal() as session:
        stored = session.query(Assignment).one()
        exact = stored.due_date

        assert not stored.is_overdue(exact)
        assert stored.is_overdue(exact + timedelta(microseconds=1))

        at_due, _ = list_assignments(session, AssignmentFilters(bucket="OVERDUE"), now=exact)
        after_due, _ = list_assignments(session, AssignmentFilters(bucket="OVERDUE"), now=exact + timedelta(seconds=1))
        assert at_due == []
        assert [assignment.id for assignment in after_due] == [stored.id]


def test_done_assignment_is_never_overdue():
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    assignment = Assignment(status=AssignmentStatusEnum.DONE, due_date=now - timedelta(days=3))
    assert not assignment.is_overdue(now)
    assert not Assignment(status=AssignmentStatusEnum.OPEN, due_date=None).is_overdue(now)


class _RecordingMailer:
    def __init__(self, fail: bool = False) -> None:
        self.sent = []
        self.fail = fail

    def send(self, message) -> None:
        if self.fail:
            raise UpstreamUnavailable("Failed to send email")
        self.sent.append(message)


@pytest.mark.integration
def test_assignee_is_emailed_when_notifications_enabled(
    client, admin_headers, staff_user, staff_headers, staff_document, monkeypatch
):
    from dms.services import assignments

    mailer = _RecordingMailer()
    monkeypatch.setattr(assignments, "get_mailer", lambda: mailer)

    _assign(client, staff_headers, staff_document["id"], staff_user.id)
    assert mailer.sent == []

    client.patch("/admin/settings", json={"email_notifications": True}, headers=admin_headers)
    response = _assign(client, staff_headers, staff_document["id"], staff_user.id, note="Please draft a reply")
    assert response.status_code == 201
    assert len(mailer.sent) == 1
    message = mailer.sent[0]
    assert message.to == staff_user.email
    assert "PLAN/9" in message.subject
    assert "Please draft a reply" in message.body


@pytest.mark.integration
def test_notification_failure_does_not_fail_assignment(
    client, admin_headers, staff_user, staff_headers, staff_document, monkeypatch
):
    from dms.services import assignments

    monkeypatch.setattr(assignments, "get_mailer", lambda: _RecordingMailer(fail=True))
    client.patch("/admin/settings", json={"email_notifications": True}, headers=admin_headers)

    response = _assign(client, staff_headers, staff_document["id"], staff_user.id)
    assert response.status_code == 201
    with SessionLocal() as session:
        assert session.query(Assignment).count() == 1
