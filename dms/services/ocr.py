"""Text extraction for uploaded letters.

PDFs use their embedded text layer when present and fall back to Tesseract on
rendered pages; images go straight to Tesseract. Extraction is one synchronous
attempt with no retry.
"""

from __future__ import annotations

import io
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import pdfplumber
import pytesseract
from PIL import Image
from sqlalchemy import and_, exists, func, not_
from sqlalchemy.orm import Session

from ..config import settings
from ..errors import NotFound, UpstreamUnavailable, ValidationError
from ..models import Document, FileObject
from .audit import audited
from .auth import AuthContext
from .storage import get_storage_service

logger = logging.getLogger(__name__)

OCR_COMPLETED = "COMPLETED"
OCR_PENDING = "PENDING"
OCR_NO_FILES = "NO_FILES"
OCR_STATUSES = (OCR_COMPLETED, OCR_PENDING, OCR_NO_FILES)

PDF_RENDER_RESOLUTION = 300
MIN_SEARCH_LENGTH = 2

_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".tif", ".tiff", ".bmp", ".gif"}


def ocr_status(document: Document, file_count: int) -> str:
    if document.ocr_text:
        return OCR_COMPLETED
    if file_count > 0:
        return OCR_PENDING
    return OCR_NO_FILES


def _is_pdf(mime_type: str, filename: str) -> bool:
    return mime_type == "application/pdf" or Path(filename).suffix.lower() == ".pdf"


def _is_image(mime_type: str, filename: str) -> bool:
    return mime_type.startswith("image/") or Path(filename).suffix.lower() in _IMAGE_EXTENSIONS


def _tesseract(image: Image.Image) -> str:
    return pytesseract.image_to_string(image, lang=settings.tesseract_lang)


def _extract_pdf(data: bytes) -> str:
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        text = "\n".join(page.extract_text() or "" for page in pdf.pages).strip()
        if text:
            return text
        # scanned PDF without a text layer
        rendered = [page.to_image(resolution=PDF_RENDER_RESOLUTION).original for page in pdf.pages]
    return "\n".join(_tesseract(image) for image in rendered).strip()


def extract_text(data: bytes, mime_type: str, filename: str) -> str:
    """Return the text found in a file; raise ``UpstreamUnavailable`` if the engine fails."""
    try:
        if _is_pdf(mime_type, filename):
            return _extract_pdf(data)
        if _is_image(mime_type, filename):
            with Image.open(io.BytesIO(data)) as image:
                return _tesseract(image).strip()
    except Exception as exc:
        logger.exception("ocr_failed filename=%s", filename)
        raise UpstreamUnavailable("Text extraction failed") from exc

    raise ValidationError("Unsupported file type for text extraction")


def _latest_file(db: Session, document_id: uuid.UUID) -> Optional[FileObject]:
    return (
        db.query(FileObject)
        .filter(FileObject.document_id == document_id)
        .order_by(FileObject.created_at.desc())
        .first()
    )


def run_ocr(db: Session, context: AuthContext, document_id: uuid.UUID) -> Document:
    """Extract text from the newest file of a document and store it verbatim."""
    document = db.get(Document, document_id)
    if document is None:
        raise NotFound("Document not found")
    context.ensure_division_access(document.division_id)

    file_obj = _latest_file(db, document.id)
    if file_obj is None:
        raise ValidationError("Document has no files")

    data = get_storage_service().read(file_obj.storage_key)
    text = extract_text(data, file_obj.mime_type, file_obj.original_name)

    with audited(
        db,
        action="OCR_RUN",
        entity="DOCUMENT",
        entity_id=document.id,
        user_id=context.user_id,
        meta={"letter_no": document.letter_no, "file_id": str(file_obj.id), "characters": len(text)},
    ):
        document.ocr_text = text

    db.refresh(document)
    logger.info("ocr_completed document_id=%s characters=%s", document.id, len(text))
    return document


@dataclass
class OcrBatchResult:
    processed: list[uuid.UUID]
    skipped: list[uuid.UUID]
    failed: list[uuid.UUID]


def run_ocr_batch(db: Session, context: AuthContext, document_ids: Iterable[uuid.UUID]) -> OcrBatchResult:
    result = OcrBatchResult(processed=[], skipped=[], failed=[])
    for document_id in document_ids:
        try:
            run_ocr(db, context, document_id)
        except (NotFound, ValidationError):
            result.skipped.append(document_id)
        except UpstreamUnavailable:
            result.failed.append(document_id)
        else:
            result.processed.append(document_id)
    return result


def _file_counts(db: Session, document_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
    if not document_ids:
        return {}
    rows = (
        db.query(FileObject.document_id, func.count(FileObject.id))
        .filter(FileObject.document_id.in_(document_ids))
        .group_by(FileObject.document_id)
        .all()
    )
    return {document_id: count for document_id, count in rows}


def _has_text():
    return and_(Document.ocr_text.isnot(None), Document.ocr_text != "")


def _has_files():
    return exists().where(FileObject.document_id == Document.id)


def _with_status(documents: list[Document], db: Session) -> list[tuple[Document, int, str]]:
    counts = _file_counts(db, [document.id for document in documents])
    return [(document, counts.get(document.id, 0), ocr_status(document, counts.get(document.id, 0))) for document in documents]


def list_ocr_documents(
    db: Session,
    *,
    division_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[tuple[Document, int, str]], int]:
    if status and status not in OCR_STATUSES:
        raise ValidationError("Unknown OCR status")

    query = db.query(Document)
    if division_id:
        query = query.filter(Document.division_id == division_id)
    if status == OCR_COMPLETED:
        query = query.filter(_has_text())
    elif status == OCR_PENDING:
        query = query.filter(not_(_has_text()), _has_files())
    elif status == OCR_NO_FILES:
        query = query.filter(not_(_has_text()), not_(_has_files()))

    total = query.count()
    documents = query.order_by(Document.created_at.desc()).offset(offset).limit(limit).all()
    return _with_status(documents, db), total


def search_ocr_text(
    db: Session, query_text: str, *, limit: int = 50, offset: int = 0
) -> tuple[list[tuple[Document, int, str]], int]:
    """Literal, case-insensitive substring search over extracted text."""
    term = (query_text or "").strip()
    if len(term) < MIN_SEARCH_LENGTH:
        return [], 0

    query = db.query(Document).filter(Document.ocr_text.icontains(term, autoescape=True))
    total = query.count()
    documents = query.order_by(Document.created_at.desc()).offset(offset).limit(limit).all()
    return _with_status(documents, db), total
