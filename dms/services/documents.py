"""Document workflow: upload, detail, division routing, status timeline, listing."""

from __future__ import annotations

import io
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload, selectinload

from ..errors import DmsError, Forbidden, NotFound, ValidationError
from ..models import Assignment, Division, Document, FileObject, Role, Status
from .audit import audited, record_event
from .auth import AuthContext
from .metrics import record_document_uploaded, record_status_change
from .storage import get_storage_service
from .system_settings import load_settings

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_STATUS = "RECEIVED"
INITIAL_STATUS_NOTE = "Initial status"
MIN_STATUS_NAME_LENGTH = 2
UPLOAD_CHUNK_BYTES = 1024 * 1024


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes


@dataclass
class UploadRequest:
    letter_no: str
    division_id: Optional[uuid.UUID]
    file: Optional[UploadedFile]
    to_name: str = ""
    from_name: str = ""
    subject: str = ""
    status: str = DEFAULT_INITIAL_STATUS


@dataclass
class DocumentFilters:
    division_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    letter_no: Optional[str] = None
    q: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = 50
    offset: int = 0


def read_upload(stream: BinaryIO, limit_bytes: int) -> bytes:
    """Read an upload in chunks, stopping one byte past ``limit_bytes``.

    Bytes beyond that point stay unread; ``upload_document`` rejects the short read as oversized.
    """
    buffer = io.BytesIO()
    total_bytes = 0
    while total_bytes <= limit_bytes:
        chunk = stream.read(min(UPLOAD_CHUNK_BYTES, limit_bytes + 1 - total_bytes))
        if not chunk:
            break
        total_bytes += len(chunk)
        buffer.write(chunk)
    return buffer.getvalue()


def get_document_or_404(db: Session, document_id: uuid.UUID) -> Document:
    document = db.get(Document, document_id)
    if document is None:
        raise NotFound("Document not found")
    return document


def get_accessible_document(db: Session, context: AuthContext, document_id: uuid.UUID) -> Document:
    document = get_document_or_404(db, document_id)
    context.ensure_division_access(document.division_id)
    return document


def _require_division(db: Session, division_id: uuid.UUID) -> Division:
    division = db.get(Division, division_id)
    if division is None:
        raise NotFound("Division not found")
    return division


def upload_document(db: Session, context: AuthContext, request: UploadRequest) -> Document:
    letter_no = (request.letter_no or "").strip()
    division_id = request.division_id
    if division_id is None and not context.is_admin:
        division_id = context.division_id
    file = request.file

    if not letter_no or division_id is None or file is None or not file.filename:
        raise ValidationError("Missing fields")

    context.ensure_division_access(division_id)
    _require_division(db, division_id)

    system = load_settings(db)
    if not file.data:
        raise ValidationError("Empty file")
    if len(file.data) > system.max_upload_bytes:
        raise ValidationError(f"File exceeds the {system.file_upload_max_size} MB limit")
    extension = Path(file.filename).suffix.lower()
    if not system.allows_extension(extension):
        raise ValidationError(f"File type {extension or '(none)'} is not allowed")

    status_name = (request.status or "").strip() or DEFAULT_INITIAL_STATUS
    content_type = file.content_type or "application/octet-stream"

    storage = get_storage_service()
    stored = storage.put(storage.build_key(division_id, file.filename), file.data, content_type)

    try:
        with audited(
            db,
            action="UPLOAD",
            entity="DOCUMENT",
            user_id=context.user_id,
            meta={"letter_no": letter_no, "division_id": str(division_id), "file_name": file.filename},
        ) as entry:
            document = Document(
                letter_no=letter_no,
                subject=(request.subject or "").strip(),
                from_name=(request.from_name or "").strip(),
                to_name=(request.to_name or "").strip(),
                division_id=division_id,
                created_by_id=context.user_id,
            )
            db.add(document)
            db.flush()

            db.add(
                FileObject(
                    document_id=document.id,
                    original_name=file.filename,
                    mime_type=content_type,
                    size_bytes=stored.size_bytes,
                    storage_key=stored.key,
                    uploaded_by_id=context.user_id,
                )
            )
            status = Status(
                document_id=document.id,
                name=status_name,
                note=INITIAL_STATUS_NOTE,
                created_by_id=context.user_id,
            )
            db.add(status)
            db.flush()

            document.current_status_id = status.id
            entry.entity_id = str(document.id)
    except Exception:
        try:
            storage.delete(stored.key)
        except DmsError:
            logger.warning("Failed to delete stored file after failed upload key=%s", stored.key, exc_info=True)
        raise

    record_document_uploaded(division_id)
    logger.info("document_uploaded document_id=%s division_id=%s letter_no=%s", document.id, division_id, letter_no)
    return document


def get_document_detail(db: Session, context: AuthContext, document_id: uuid.UUID) -> Document:
    document = (
        db.query(Document)
        .options(
            joinedload(Document.division),
            joinedload(Document.current_status),
            joinedload(Document.created_by),
            selectinload(Document.statuses).joinedload(Status.created_by),
            selectinload(Document.files).joinedload(FileObject.uploaded_by),
            selectinload(Document.assignments).joinedload(Assignment.assignee),
            selectinload(Document.assignments).joinedload(Assignment.assigned_by),
        )
        .filter(Document.id == document_id)
        .one_or_none()
    )
    if document is None:
        raise NotFound("Document not found")
    context.ensure_division_access(document.division_id)
    return document


def change_division(
    db: Session,
    context: AuthContext,
    document_id: uuid.UUID,
    division_id: Optional[uuid.UUID],
) -> Document:
    context.ensure_role(Role.ADMIN)
    if division_id is None:
        raise ValidationError("division_id is required")

    document = get_document_or_404(db, document_id)
    _require_division(db, division_id)

    previous_division_id = document.division_id
    changed = ["division_id"] if previous_division_id != division_id else []

    with audited(
        db,
        action="UPDATE_DOCUMENT",
        entity="DOCUMENT",
        entity_id=document.id,
        user_id=context.user_id,
        meta={
            "changed": changed,
            "from_division_id": str(previous_division_id),
            "to_division_id": str(division_id),
        },
    ):
        document.division_id = division_id

    db.refresh(document)
    logger.info("document_rerouted document_id=%s from=%s to=%s", document.id, previous_division_id, division_id)
    return document


def append_status(
    db: Session,
    context: AuthContext,
    document_id: uuid.UUID,
    name: str,
    note: Optional[str] = None,
) -> Status:
    """Add a timeline entry and make it the document's current status.

    Concurrent appends both persist; the pointer ends on whichever commits last.
    """
    status_name = (name or "").strip()
    if len(status_name) < MIN_STATUS_NAME_LENGTH:
        raise ValidationError(f"Status name must be at least {MIN_STATUS_NAME_LENGTH} characters")

    document = get_accessible_document(db, context, document_id)

    with audited(
        db,
        action="STATUS_CHANGE",
        entity="DOCUMENT",
        entity_id=document.id,
        user_id=context.user_id,
        meta={"new_status": status_name, "note": note},
    ):
        status = Status(document_id=document.id, name=status_name, note=note, created_by_id=context.user_id)
        db.add(status)
        db.flush()
        document.current_status_id = status.id

    record_status_change(document.division_id)
    logger.info("status_appended document_id=%s status=%s", document.id, status_name)
    return status


def list_documents(db: Session, context: AuthContext, filters: DocumentFilters) -> tuple[list[Document], int]:
    query = db.query(Document)

    if context.is_admin:
        if filters.division_id:
            query = query.filter(Document.division_id == filters.division_id)
    else:
        if filters.division_id and filters.division_id != context.division_id:
            raise Forbidden()
        query = query.filter(Document.division_id == context.division_id)

    if filters.status:
        query = query.join(Status, Status.id == Document.current_status_id).filter(Status.name == filters.status)

    if filters.letter_no:
        query = query.filter(Document.letter_no.icontains(filters.letter_no, autoescape=True))

    if filters.q:
        query = query.filter(
            or_(
                Document.letter_no.icontains(filters.q, autoescape=True),
                Document.subject.icontains(filters.q, autoescape=True),
                Document.from_name.icontains(filters.q, autoescape=True),
                Document.to_name.icontains(filters.q, autoescape=True),
                Document.ocr_text.icontains(filters.q, autoescape=True),
            )
        )

    if filters.date_from:
        query = query.filter(Document.created_at >= filters.date_from)
    if filters.date_to:
        query = query.filter(Document.created_at <= filters.date_to)

    total = query.count()
    documents = (
        query.options(joinedload(Document.division), joinedload(Document.current_status), joinedload(Document.created_by))
        .order_by(Document.created_at.desc())
        .offset(filters.offset)
        .limit(filters.limit)
        .all()
    )
    return documents, total


def document_counts(db: Session, document_ids: list[uuid.UUID]) -> dict[uuid.UUID, dict[str, int]]:
    """File and assignment counts per document, for list views."""
    counts: dict[uuid.UUID, dict[str, int]] = {doc_id: {"files": 0, "assignments": 0} for doc_id in document_ids}
    if not document_ids:
        return counts

    for doc_id, count in (
        db.query(FileObject.document_id, func.count(FileObject.id))
        .filter(FileObject.document_id.in_(document_ids))
        .group_by(FileObject.document_id)
    ):
        counts[doc_id]["files"] = count
    for doc_id, count in (
        db.query(Assignment.document_id, func.count(Assignment.id))
        .filter(Assignment.document_id.in_(document_ids))
        .group_by(Assignment.document_id)
    ):
        counts[doc_id]["assignments"] = count
    return counts


def latest_files(db: Session, document_ids: list[uuid.UUID]) -> dict[uuid.UUID, FileObject]:
    if not document_ids:
        return {}
    latest: dict[uuid.UUID, FileObject] = {}
    files = (
        db.query(FileObject)
        .filter(FileObject.document_id.in_(document_ids))
        .order_by(FileObject.created_at.desc())
        .all()
    )
    for file_obj in files:
        latest.setdefault(file_obj.document_id, file_obj)
    return latest


def get_download_url(db: Session, context: AuthContext, file_id: uuid.UUID) -> tuple[FileObject, str]:
    file_obj = db.get(FileObject, file_id)
    if file_obj is None:
        raise NotFound("File not found")
    document = get_document_or_404(db, file_obj.document_id)
    context.ensure_division_access(document.division_id)

    url = get_storage_service().generate_presigned_url(file_obj.storage_key)

    record_event(
        db,
        action="DOWNLOAD",
        entity="FILE",
        entity_id=file_obj.id,
        user_id=context.user_id,
        meta={"document_id": str(document.id), "original_name": file_obj.original_name},
    )

    return file_obj, url
