from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ..dependencies.auth import require_admin
from ..dependencies.db import get_db
from ..errors import ValidationError
from ..services.auth import AuthContext
from ..services.system_settings import load_settings, update_settings

router = APIRouter(prefix="/admin/settings", tags=["admin"])


@router.get("")
def get_settings(
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return load_settings(db).model_dump()


@router.patch("")
def patch_settings(
    payload: Any = Body(...),
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not isinstance(payload, dict):
        raise ValidationError("Settings payload must be an object")
    return update_settings(db, payload, actor_id=context.user_id).model_dump()
