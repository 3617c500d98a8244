from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..dependencies.auth import require_auth
from ..dependencies.db import get_db
from ..services.auth import AuthContext
from ..services.documents import get_download_url

router = APIRouter()


@router.get("/files/{file_id}/download")
def download_file(
    file_id: uuid.UUID,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
):
    file_obj, url = get_download_url(db, context, file_id)
    return {"url": url, "file_name": file_obj.original_name}
