from __future__ import annotations

import io
import os
import pathlib
import sys
import tempfile
from types import SimpleNamespace
from typing import Callable, Iterator, Optional

import boto3
import pytest
from fastapi.testclient import TestClient

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

_DB_DIR = tempfile.mkdtemp(prefix="dms-tests-")
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", f"sqlite:///{_DB_DIR}/dms.db")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ["EMAIL_BACKEND"] = "console"

from dms.config import settings
from dms.db.session import SessionLocal, engine
from dms.main import app
from dms.models import Base, Division, Document, Role, User
from dms.services.auth import AuthContext, AuthService, hash_password

DEFAULT_PASSWORD = "secret-pass"
PDF_BYTES = b"%PDF-1.4\n1 0 obj<<>>endobj\ntrailer<<>>\n%%EOF"


@pytest.fixture(scope="session", autouse=True)
def database_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="session")
def client(database_schema) -> Iterator[TestClient]:
    """Provide a FastAPI TestClient instance."""
    with TestClient(app) as _client:
        yield _client


@pytest.fixture(autouse=True)
def cleanup_database() -> Iterator[None]:
    """Empty every table after each test to keep isolation."""
    yield
    with SessionLocal() as session:
        session.query(Document).update({Document.current_status_id: None})
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()


@pytest.fixture()
def mock_s3_bucket():
    from moto import mock_aws

    with mock_aws():
        s3 = boto3.client("s3", region_name=settings.aws.region)
        bucket = "test-storage-bucket"
        s3.create_bucket(Bucket=bucket)
        previous_bucket = settings.aws.s3_bucket
        settings.aws.s3_bucket = bucket
        try:
            yield s3
        finally:
            settings.aws.s3_bucket = previous_bucket


@pytest.fixture()
def make_division() -> Callable[..., SimpleNamespace]:
    def _make(name: str = "Planning and IT division") -> SimpleNamespace:
        with SessionLocal() as session:
            division = Division(name=name)
            session.add(division)
            session.commit()
            return SimpleNamespace(id=division.id, name=division.name)

    return _make


@pytest.fixture()
def make_user() -> Callable[..., SimpleNamespace]:
    def _make(
        email: str,
        *,
        role: Role = Role.STAFF,
        division_id=None,
        name: str = "Test User",
        password: str = DEFAULT_PASSWORD,
        is_active: bool = True,
    ) -> SimpleNamespace:
        with SessionLocal() as session:
            user = User(
                email=email.lower(),
                name=name,
                password_hash=hash_password(password),
                role=role,
                division_id=division_id,
                is_active=is_active,
            )
            session.add(user)
            session.commit()
            return SimpleNamespace(
                id=user.id,
                email=user.email,
                name=user.name,
                role=role,
                division_id=division_id,
                password=password,
            )

    return _make


def headers_for(user: SimpleNamespace) -> dict[str, str]:
    context = AuthContext(
        user_id=user.id,
        role=user.role,
        division_id=user.division_id,
        email=user.email,
        name=user.name,
    )
    with SessionLocal() as session:
        token = AuthService(session).issue_token(context)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def division(make_division) -> SimpleNamespace:
    return make_division("Planning and IT division")


@pytest.fixture()
def other_division(make_division) -> SimpleNamespace:
    return make_division("Procurement")


@pytest.fixture()
def admin_user(make_user) -> SimpleNamespace:
    return make_user("admin@ministry.gov.lk", role=Role.ADMIN, name="Admin")


@pytest.fixture()
def staff_user(make_user, division) -> SimpleNamespace:
    return make_user("clerk@ministry.gov.lk", division_id=division.id, name="Clerk")


@pytest.fixture()
def admin_headers(admin_user) -> dict[str, str]:
    return headers_for(admin_user)


@pytest.fixture()
def staff_headers(staff_user) -> dict[str, str]:
    return headers_for(staff_user)


@pytest.fixture()
def upload(client) -> Callable[..., object]:
    """POST /documents/upload with sensible defaults."""

    def _upload(
        headers: dict[str, str],
        division_id=None,
        *,
        letter_no: Optional[str] = "MIN/2024/001",
        filename: str = "letter.pdf",
        content: bytes = PDF_BYTES,
        content_type: str = "application/pdf",
        **fields: str,
    ):
        data = {key: value for key, value in fields.items()}
        if letter_no is not None:
            data["letter_no"] = letter_no
        if division_id is not None:
            data["division_id"] = str(division_id)
        return client.post(
            "/documents/upload",
            data=data,
            files={"file": (filename, io.BytesIO(content), content_type)},
            headers=headers,
        )

    return _upload


@pytest.fixture()
def auth_headers() -> Callable[[SimpleNamespace], dict[str, str]]:
    return headers_for
