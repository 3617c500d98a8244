from __future__ import annotations

import pytest

from dms.db.session import SessionLocal
from dms.models import AuditLog


@pytest.mark.integration
def test_division_lifecycle(client, admin_headers):
    created = client.post("/admin/divisions", json={"name": "  Women's bureau of Sri Lanka "}, headers=admin_headers)
    assert created.status_code == 201
    division = created.json()
    assert division["name"] == "Women's bureau of Sri Lanka"

    duplicate = client.post("/admin/divisions", json={"name": "women's bureau of sri lanka"}, headers=admin_headers)
    assert duplicate.status_code == 409

    renamed = client.patch(f"/admin/divisions/{division['id']}", json={"name": "Women's Bureau"}, headers=admin_headers)
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Women's Bureau"

    deleted = client.delete(f"/admin/divisions/{division['id']}", headers=admin_headers)
    assert deleted.status_code == 204
    assert client.get(f"/admin/divisions/{division['id']}", headers=admin_headers).status_code == 404

    with SessionLocal() as session:
        actions = sorted(log.action for log in session.query(AuditLog).filter(AuditLog.entity == "DIVISION"))
        assert actions == ["CREATE_DIVISION", "DELETE_DIVISION", "UPDATE_DIVISION"]


@pytest.mark.integration
def test_division_in_use_cannot_be_deleted(client, admin_headers, division, staff_user):
    response = client.delete(f"/admin/divisions/{division.id}", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["kind"] == "Conflict"


@pytest.mark.integration
def test_division_list_and_detail(client, admin_headers, division, other_division, staff_user, staff_headers, upload, mock_s3_bucket):
    upload(staff_headers, staff_user.division_id)

    listed = client.get("/admin/divisions", headers=admin_headers).json()
    assert listed["total"] == 2
    by_name = {item["name"]: item for item in listed["items"]}
    assert by_name[division.name]["document_count"] == 1
    assert by_name[division.name]["user_count"] == 1
    assert by_name[other_division.name]["document_count"] == 0

    searched = client.get("/admin/divisions?search=procure", headers=admin_headers).json()
    assert [item["name"] for item in searched["items"]] == [other_division.name]

    detail = client.get(f"/admin/divisions/{division.id}", headers=admin_headers).json()
    assert [user["email"] for user in detail["users"]] == [staff_user.email]
    assert detail["status_counts"] == {"RECEIVED": 1}


@pytest.mark.integration
def test_division_name_is_required(client, admin_headers):
    response = client.post("/admin/divisions", json={"name": " x "}, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.integration
def test_create_user_and_login(client, admin_headers, division):
    response = client.post(
        "/admin/users",
        json={
            "email": "New.Officer@Ministry.gov.lk",
            "name": "New Officer",
            "password": "welcome1",
            "role": "STAFF",
            "division_id": str(division.id),
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    user = response.json()
    assert user["email"] == "new.officer@ministry.gov.lk"
    assert user["division"]["name"] == division.name
    assert user["is_active"] is True

    login = client.post("/auth/login", json={"email": "new.officer@ministry.gov.lk", "password": "welcome1"})
    assert login.status_code == 200

    with SessionLocal() as session:
        log = session.query(AuditLog).filter(AuditLog.action == "CREATE_USER").one()
        assert log.entity_id == user["id"]
        assert log.meta == {"email": user["email"], "role": "STAFF", "division_id": str(division.id)}


@pytest.mark.integration
@pytest.mark.parametrize(
    "payload,status_code",
    [
        ({"email": "clerk@ministry.gov.lk", "name": "Copy", "password": "secret1"}, 409),
        ({"email": "short@ministry.gov.lk", "name": "Short", "password": "12345"}, 400),
        ({"email": "tiny@ministry.gov.lk", "name": "T", "password": "secret1"}, 400),
        (
            {
                "email": "lost@ministry.gov.lk",
                "name": "Lost",
                "password": "secret1",
                "division_id": "00000000-0000-0000-0000-000000000000",
            },
            404,
        ),
    ],
)
def test_create_user_validation(client, admin_headers, staff_user, payload, status_code):
    response = client.post("/admin/users", json=payload, headers=admin_headers)
    assert response.status_code == status_code


@pytest.mark.integration
def test_update_user_resets_password_and_moves_division(client, admin_headers, staff_user, other_division):
    response = client.patch(
        f"/admin/users/{staff_user.id}",
        json={"password": "brand-new-pass", "division_id": str(other_division.id)},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["division_id"] == str(other_division.id)

    old = client.post("/auth/login", json={"email": staff_user.email, "password": staff_user.password})
    new = client.post("/auth/login", json={"email": staff_user.email, "password": "brand-new-pass"})
    assert old.status_code == 401
    assert new.status_code == 200
    assert new.json()["user"]["division_id"] == str(other_division.id)

    with SessionLocal() as session:
        log = session.query(AuditLog).filter(AuditLog.action == "UPDATE_USER").one()
        assert log.meta == {"changed": ["division_id", "password"]}


@pytest.mark.integration
def test_user_list_is_newest_first(client, admin_user, admin_headers, staff_user):
    listed = client.get("/admin/users", headers=admin_headers).json()
    assert listed["total"] == 2
    assert [item["email"] for item in listed["items"]] == [staff_user.email, admin_user.email]
