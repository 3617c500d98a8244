from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..dependencies.auth import require_admin
from ..dependencies.db import get_db
from ..models import Role
from ..services.auth import AuthContext
from ..services.users import NewUser, UserChanges, create_user, list_users, update_user
from .serializers import serialize_user

router = APIRouter(prefix="/admin/users", tags=["admin"])


class CreateUserPayload(BaseModel):
    email: str
    name: str
    password: str
    role: Role = Role.STAFF
    division_id: Optional[uuid.UUID] = None


class UpdateUserPayload(BaseModel):
    name: Optional[str] = None
    role: Optional[Role] = None
    division_id: Optional[uuid.UUID] = None
    password: Optional[str] = None
    is_active: Optional[bool] = None


@router.get("")
def list_all_users(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users, total = list_users(db, limit=limit, offset=offset)
    return {"items": [serialize_user(user) for user in users], "total": total}


@router.post("", status_code=201)
def add_user(
    payload: CreateUserPayload,
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = create_user(
        db,
        context,
        NewUser(
            email=payload.email,
            name=payload.name,
            password=payload.password,
            role=payload.role,
            division_id=payload.division_id,
        ),
    )
    return serialize_user(user)


@router.patch("/{user_id}")
def edit_user(
    user_id: uuid.UUID,
    payload: UpdateUserPayload,
    context: AuthContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    changes = UserChanges(**payload.model_dump(), provided=set(payload.model_fields_set))
    return serialize_user(update_user(db, context, user_id, changes))
