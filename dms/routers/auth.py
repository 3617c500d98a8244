from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..dependencies.auth import require_auth
from ..dependencies.db import get_db
from ..services.auth import AuthContext, AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


def _serialize_context(context: AuthContext) -> dict:
    return {
        "id": str(context.user_id),
        "email": context.email,
        "name": context.name,
        "role": context.role.value,
        "division_id": str(context.division_id) if context.division_id else None,
    }


@router.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    token, context = AuthService(db).login(payload.email, payload.password)
    return {"token": token, "token_type": "bearer", "user": _serialize_context(context)}


@router.get("/me")
def me(context: AuthContext = Depends(require_auth)):
    return {"user": _serialize_context(context)}
