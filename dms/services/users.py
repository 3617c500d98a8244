"""User administration."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..errors import Conflict, NotFound, ValidationError
from ..models import Division, Role, User
from .audit import audited
from .auth import AuthContext, hash_password, normalize_email

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MIN_NAME_LENGTH = 2


@dataclass
class NewUser:
    email: str
    name: str
    password: str
    role: Role = Role.STAFF
    division_id: Optional[uuid.UUID] = None


@dataclass
class UserChanges:
    """Only fields listed in ``provided`` are applied."""

    name: Optional[str] = None
    role: Optional[Role] = None
    division_id: Optional[uuid.UUID] = None
    password: Optional[str] = None
    is_active: Optional[bool] = None
    provided: set[str] = field(default_factory=set)


def _validate_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if len(cleaned) < MIN_NAME_LENGTH:
        raise ValidationError(f"Name must be at least {MIN_NAME_LENGTH} characters")
    return cleaned


def _validate_password(password: Optional[str]) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def _require_division(db: Session, division_id: Optional[uuid.UUID]) -> None:
    if division_id is not None and db.get(Division, division_id) is None:
        raise NotFound("Division not found")


def list_users(db: Session, *, limit: int = 100, offset: int = 0) -> tuple[list[User], int]:
    query = db.query(User)
    total = query.count()
    users = (
        query.options(joinedload(User.division))
        .order_by(User.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return users, total


def create_user(db: Session, context: Optional[AuthContext], payload: NewUser) -> User:
    email = normalize_email(payload.email or "")
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    name = _validate_name(payload.name)
    password = _validate_password(payload.password)
    _require_division(db, payload.division_id)

    if db.query(User).filter(func.lower(User.email) == email).first() is not None:
        raise Conflict("A user with this email already exists")

    with audited(
        db,
        action="CREATE_USER",
        entity="USER",
        user_id=context.user_id if context else None,
        meta={
            "email": email,
            "role": payload.role.value,
            "division_id": str(payload.division_id) if payload.division_id else None,
        },
    ) as entry:
        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            role=payload.role,
            division_id=payload.division_id,
            is_active=True,
        )
        db.add(user)
        db.flush()
        entry.entity_id = str(user.id)

    logger.info("user_created user_id=%s role=%s", user.id, payload.role.value)
    return user


def update_user(db: Session, context: AuthContext, user_id: uuid.UUID, changes: UserChanges) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")

    updates: dict[str, Any] = {}
    if "name" in changes.provided:
        updates["name"] = _validate_name(changes.name)
    if "role" in changes.provided:
        if changes.role is None:
            raise ValidationError("Role cannot be empty")
        updates["role"] = changes.role
    if "division_id" in changes.provided:
        _require_division(db, changes.division_id)
        updates["division_id"] = changes.division_id
    if "is_active" in changes.provided:
        if changes.is_active is None:
            raise ValidationError("is_active cannot be empty")
        updates["is_active"] = changes.is_active
    if "password" in changes.provided:
        updates["password_hash"] = hash_password(_validate_password(changes.password))

    changed = sorted("password" if key == "password_hash" else key for key in updates)
    with audited(
        db,
        action="UPDATE_USER",
        entity="USER",
        entity_id=user.id,
        user_id=context.user_id,
        meta={"changed": changed},
    ):
        for key, value in updates.items():
            setattr(user, key, value)

    db.refresh(user)
    logger.info("user_updated user_id=%s changed=%s", user.id, ",".join(changed))
    return user
