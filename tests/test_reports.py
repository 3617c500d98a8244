from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone

import pytest
from openpyxl import load_workbook

from dms.db.session import SessionLocal
from dms.models import Assignment, AssignmentStatusEnum, AuditLog, Document, Status


def _seed_document(division_id, created_by_id, letter_no, status_name="RECEIVED", created_at=None):
    created_at = created_at or datetime.now(timezone.utc)
    with SessionLocal() as session:
        document = Document(
            letter_no=letter_no,
            division_id=division_id,
            created_by_id=created_by_id,
            created_at=created_at,
        )
        session.add(document)
        session.flush()
        status = Status(document_id=document.id, name=status_name, created_by_id=created_by_id, created_at=created_at)
        session.add(status)
        session.flush()
        document.current_status_id = status.id
        session.commit()
        return document.id


@pytest.fixture()
def seeded(admin_user, division, other_division):
    old = datetime.now(timezone.utc) - timedelta(days=40)
    ids = {
        "plan_1": _seed_document(division.id, admin_user.id, "PLAN/1"),
        "plan_2": _seed_document(division.id, admin_user.id, "PLAN/2", "APPROVED"),
        "proc_1": _seed_document(other_division.id, admin_user.id, "PROC/1"),
        "ancient": _seed_document(other_division.id, admin_user.id, "PROC/0", created_at=old),
    }
    return ids


@pytest.mark.integration
def test_documents_by_division_report(client, admin_headers, division, other_division, seeded):
    response = client.get("/admin/reports/generate?report_type=DOCUMENTS_BY_DIVISION", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["report_type"] == "DOCUMENTS_BY_DIVISION"
    assert body["columns"] == ["division", "document_count"]
    assert body["data"] == [
        {"division": division.name, "document_count": 2},
        {"division": other_division.name, "document_count": 1},
    ]
    assert body["summary"] == {"total_documents": 3, "divisions_count": 2}
    assert body["filters"]["time_range"] == "MONTHLY"

    approved = client.get(
        "/admin/reports/generate?report_type=DOCUMENTS_BY_DIVISION&status=APPROVED",
        headers=admin_headers,
    ).json()
    assert approved["data"] == [{"division": division.name, "document_count": 1}]


@pytest.mark.integration
def test_status_summary_report(client, admin_headers, division, seeded):
    body = client.get(
        "/admin/reports/generate?report_type=STATUS_SUMMARY&time_range=WEEKLY",
        headers=admin_headers,
    ).json()
    assert body["data"] == [{"status": "RECEIVED", "count": 2}, {"status": "APPROVED", "count": 1}]
    assert body["summary"] == {"total_status_changes": 3, "unique_statuses": 2}

    scoped = client.get(
        f"/admin/reports/generate?report_type=STATUS_SUMMARY&division_id={division.id}",
        headers=admin_headers,
    ).json()
    assert scoped["summary"]["total_status_changes"] == 2


@pytest.mark.integration
def test_all_sentinel_clears_division_and_status(client, admin_headers, seeded):
    body = client.get(
        "/admin/reports/generate?report_type=STATUS_SUMMARY&time_range=WEEKLY&division_id=ALL&status=ALL",
        headers=admin_headers,
    ).json()
    assert body["filters"]["division_id"] is None
    assert body["filters"]["status"] is None
    assert body["summary"]["total_status_changes"] == 3

    invalid = client.get(
        "/admin/reports/generate?report_type=STATUS_SUMMARY&division_id=planning",
        headers=admin_headers,
    )
    assert invalid.status_code == 400
    assert invalid.json() == {"error": "Invalid division_id", "kind": "ValidationError"}


@pytest.mark.integration
def test_overdue_assignments_report_rounds_days_up(client, admin_headers, admin_user, staff_user, seeded):
    now = datetime.now(timezone.utc)
    with SessionLocal() as session:
        session.add_all(
            [
                Assignment(
                    document_id=seeded["plan_1"],
                    assignee_id=staff_user.id,
                    assigned_by_id=admin_user.id,
                    due_date=now - timedelta(days=2, hours=12),
                ),
                Assignment(
                    document_id=seeded["plan_2"],
                    assignee_id=staff_user.id,
                    assigned_by_id=admin_user.id,
                    due_date=now - timedelta(days=10),
                    status=AssignmentStatusEnum.DONE,
                ),
                Assignment(
                    document_id=seeded["proc_1"],
                    assignee_id=staff_user.id,
                    assigned_by_id=admin_user.id,
                    due_date=now + timedelta(days=1),
                ),
            ]
        )
        session.commit()

    body = client.get("/admin/reports/generate?report_type=OVERDUE_ASSIGNMENTS", headers=admin_headers).json()
    assert body["columns"] == ["letter_no", "division", "assignee", "due_date", "days_overdue"]
    assert len(body["data"]) == 1
    row = body["data"][0]
    assert row["letter_no"] == "PLAN/1"
    assert row["assignee"] == staff_user.name
    assert row["days_overdue"] == 3
    assert body["summary"] == {"total_overdue": 1, "average_days_overdue": 3}


@pytest.mark.integration
def test_activity_report_counts_actions_and_system_events(client, admin_headers, staff_user):
    client.post("/auth/login", json={"email": staff_user.email, "password": staff_user.password})
    client.post("/auth/login", json={"email": staff_user.email, "password": staff_user.password})
    with SessionLocal() as session:
        session.add(AuditLog(action="SEED", entity="SYSTEM", user_id=None, meta={}))
        session.commit()

    body = client.get("/admin/reports/generate?report_type=ACTIVITY_REPORT", headers=admin_headers).json()
    assert body["data"] == [
        {"user": staff_user.name, "activity_count": 2},
        {"user": "System", "activity_count": 1},
    ]
    assert body["summary"] == {
        "total_uploads": 0,
        "total_downloads": 0,
        "total_logins": 2,
        "total_activities": 2,
    }


@pytest.mark.integration
def test_custom_range_requires_start_date(client, admin_headers):
    response = client.get(
        "/admin/reports/generate?report_type=STATUS_SUMMARY&time_range=CUSTOM",
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert "date_from" in response.json()["error"]


@pytest.mark.integration
def test_custom_range_includes_older_documents(client, admin_headers, seeded):
    start = (datetime.now(timezone.utc) - timedelta(days=60)).isoformat()
    response = client.get(
        "/admin/reports/generate",
        params={"report_type": "DOCUMENTS_BY_DIVISION", "time_range": "CUSTOM", "date_from": start},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["summary"]["total_documents"] == 4


@pytest.mark.integration
def test_unknown_report_type_is_rejected(client, admin_headers):
    response = client.get("/admin/reports/generate?report_type=EVERYTHING", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.integration
def test_excel_export_is_audited(client, admin_headers, division, seeded):
    response = client.post(
        "/admin/reports/export",
        json={"format": "EXCEL", "report_type": "DOCUMENTS_BY_DIVISION", "filters": {"time_range": "MONTHLY"}},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    assert response.headers["content-disposition"].startswith('attachment; filename="report_DOCUMENTS_BY_DIVISION_')

    workbook = load_workbook(io.BytesIO(response.content))
    values = [cell for row in workbook.active.iter_rows(values_only=True) for cell in row if cell is not None]
    assert "Division" in values
    assert division.name in values

    with SessionLocal() as session:
        log = session.query(AuditLog).filter(AuditLog.action == "EXPORT_REPORT").one()
        assert log.entity == "REPORT"
        assert log.meta["format"] == "EXCEL"
        assert log.meta["report_type"] == "DOCUMENTS_BY_DIVISION"


@pytest.mark.integration
def test_pdf_export(client, admin_headers, seeded):
    response = client.post(
        "/admin/reports/export",
        json={"format": "pdf", "report_type": "STATUS_SUMMARY"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


@pytest.mark.integration
def test_unknown_export_format_is_rejected_before_auditing(client, admin_headers):
    response = client.post(
        "/admin/reports/export",
        json={"format": "CSV", "report_type": "STATUS_SUMMARY"},
        headers=admin_headers,
    )
    assert response.status_code == 400
    with SessionLocal() as session:
        assert session.query(AuditLog).filter(AuditLog.action == "EXPORT_REPORT").count() == 0


@pytest.mark.integration
def test_dashboard_counts(client, admin_user, admin_headers, division, staff_user, staff_headers, upload, mock_s3_bucket):
    created = upload(staff_headers, staff_user.division_id).json()
    file_id = client.get(f"/documents/{created['id']}", headers=staff_headers).json()["files"][0]["id"]
    client.get(f"/files/{file_id}/download", headers=staff_headers)
    client.post(
        f"/documents/{created['id']}/assign",
        json={
            "assignee_id": str(staff_user.id),
            "due_date": (datetime.now(timezone.utc) - timedelta(days=1)).isoformat(),
        },
        headers=staff_headers,
    )

    response = client.get("/admin/dashboard", headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["total_documents"] == 1
    assert body["status_counts"] == {"RECEIVED": 1}
    assert body["overdue_assignments"] == 1
    assert body["documents_today"] == 1
    assert body["documents_this_week"] == 1
    assert body["downloads_today"] == 1
    assert body["downloads_this_week"] == 1
    assert body["active_users"] == 2
    assert body["documents_by_division"] == [
        {"division_id": str(division.id), "division_name": division.name, "count": 1}
    ]
