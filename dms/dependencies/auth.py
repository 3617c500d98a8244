from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..errors import ServiceUnavailable, Unauthenticated
from ..models import Role
from ..services.auth import AuthContext, AuthService
from ..services.system_settings import load_settings
from .db import get_db

BEARER_PREFIX = "bearer "


def _bearer_token(request: Request) -> str:
    header = request.headers.get("authorization", "")
    if not header.lower().startswith(BEARER_PREFIX):
        raise Unauthenticated()
    return header[len(BEARER_PREFIX):].strip()


def require_auth(request: Request, db: Session = Depends(get_db)) -> AuthContext:
    context = AuthService(db).verify_token(_bearer_token(request))

    request.state.user_id = str(context.user_id)
    request.state.role = context.role.value
    if context.division_id:
        request.state.division_id = str(context.division_id)

    if not context.is_admin and load_settings(db).system_maintenance:
        raise ServiceUnavailable()
    return context


def require_admin(context: AuthContext = Depends(require_auth)) -> AuthContext:
    context.ensure_role(Role.ADMIN)
    return context
