from __future__ import annotations

import pytest


@pytest.fixture()
def foreign_document(admin_headers, other_division, upload, mock_s3_bucket):
    response = upload(admin_headers, other_division.id, letter_no="PROC/7")
    assert response.status_code == 201
    return response.json()


@pytest.mark.integration
def test_staff_cannot_touch_other_division_documents(client, staff_headers, foreign_document):
    document_id = foreign_document["id"]

    assert client.get(f"/documents/{document_id}", headers=staff_headers).status_code == 403
    status = client.post(f"/documents/{document_id}/status", json={"name": "REVIEWED"}, headers=staff_headers)
    assert status.status_code == 403
    assert status.json() == {"error": "Forbidden", "kind": "Forbidden"}


@pytest.mark.integration
def test_staff_cannot_download_other_division_files(client, admin_headers, staff_headers, foreign_document):
    detail = client.get(f"/documents/{foreign_document['id']}", headers=admin_headers).json()
    file_id = detail["files"][0]["id"]

    assert client.get(f"/files/{file_id}/download", headers=staff_headers).status_code == 403


@pytest.mark.integration
def test_staff_cannot_upload_into_other_division(client, staff_headers, other_division, upload, mock_s3_bucket):
    response = upload(staff_headers, other_division.id)
    assert response.status_code == 403
    assert mock_s3_bucket.list_objects_v2(Bucket="test-storage-bucket").get("KeyCount") == 0


@pytest.mark.integration
def test_staff_list_is_scoped_to_own_division(client, staff_user, staff_headers, other_division, upload, foreign_document):
    own = upload(staff_headers, staff_user.division_id, letter_no="PLAN/1").json()

    listed = client.get("/documents", headers=staff_headers).json()
    assert listed["total"] == 1
    assert [item["id"] for item in listed["items"]] == [own["id"]]
    assert listed["items"][0]["latest_file"]["original_name"] == "letter.pdf"

    filtered = client.get(f"/documents?division_id={other_division.id}", headers=staff_headers)
    assert filtered.status_code == 403


@pytest.mark.integration
def test_admin_sees_every_division(client, admin_headers, staff_user, staff_headers, upload, foreign_document):
    upload(staff_headers, staff_user.division_id, letter_no="PLAN/1")

    listed = client.get("/documents", headers=admin_headers).json()
    assert listed["total"] == 2

    detail = client.get(f"/documents/{foreign_document['id']}", headers=admin_headers)
    assert detail.status_code == 200


@pytest.mark.integration
def test_staff_without_division_sees_nothing(client, make_user, auth_headers, foreign_document):
    drifter = make_user("drifter@ministry.gov.lk")
    listed = client.get("/documents", headers=auth_headers(drifter)).json()
    assert listed == {"items": [], "total": 0}


@pytest.mark.integration
def test_search_and_filters(client, staff_user, staff_headers, upload, mock_s3_bucket):
    upload(staff_headers, staff_user.division_id, letter_no="PLAN/1", subject="Budget proposal")
    second = upload(staff_headers, staff_user.division_id, letter_no="PLAN/2", from_name="Treasury").json()
    client.post(f"/documents/{second['id']}/status", json={"name": "APPROVED"}, headers=staff_headers)

    by_query = client.get("/documents?q=budget", headers=staff_headers).json()
    assert [item["letter_no"] for item in by_query["items"]] == ["PLAN/1"]

    by_sender = client.get("/documents?q=treas", headers=staff_headers).json()
    assert [item["letter_no"] for item in by_sender["items"]] == ["PLAN/2"]

    by_status = client.get("/documents?status=APPROVED", headers=staff_headers).json()
    assert [item["id"] for item in by_status["items"]] == [second["id"]]

    newest_first = client.get("/documents?limit=1", headers=staff_headers).json()
    assert newest_first["total"] == 2
    assert newest_first["items"][0]["letter_no"] == "PLAN/2"


@pytest.mark.integration
def test_search_treats_wildcards_literally(client, admin_headers, staff_user, staff_headers, upload, mock_s3_bucket):
    upload(staff_headers, staff_user.division_id, letter_no="MIN/2024/001")
    upload(staff_headers, staff_user.division_id, letter_no="MIN/2024/002", subject="Grant 50% advance")

    assert client.get("/documents?q=%25", headers=staff_headers).json()["total"] == 1
    assert client.get("/documents?q=MIN_2024", headers=staff_headers).json()["total"] == 0
    assert client.get("/admin/documents?letter_no=MIN_2024", headers=admin_headers).json()["total"] == 0
    assert client.get("/admin/documents?letter_no=min/2024/00", headers=admin_headers).json()["total"] == 2

    percent = client.get("/documents?q=50%25", headers=staff_headers).json()
    assert [item["letter_no"] for item in percent["items"]] == ["MIN/2024/002"]
