from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy import func
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from ..config import settings
from ..errors import Forbidden, InvalidCredentials, ServiceUnavailable, Unauthenticated
from ..models import Role, User
from .audit import record_event
from .metrics import record_login_attempt
from .system_settings import load_settings

logger = logging.getLogger(__name__)

TOKEN_SALT = "access-token"


@dataclass(frozen=True)
class AuthContext:
    """Claims carried by a verified bearer token."""

    user_id: uuid.UUID
    role: Role
    division_id: Optional[uuid.UUID]
    email: str
    name: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def can_access_division(self, division_id: uuid.UUID | None) -> bool:
        if self.is_admin:
            return True
        return self.division_id is not None and division_id == self.division_id

    def ensure_division_access(self, division_id: uuid.UUID | None) -> None:
        if not self.can_access_division(division_id):
            raise Forbidden()

    def ensure_role(self, role: Role) -> None:
        if self.role != role:
            raise Forbidden()

    def to_claims(self) -> dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "role": self.role.value,
            "division_id": str(self.division_id) if self.division_id else None,
            "email": self.email,
            "name": self.name,
        }

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "AuthContext":
        division_id = claims.get("division_id")
        return cls(
            user_id=uuid.UUID(claims["user_id"]),
            role=Role(claims["role"]),
            division_id=uuid.UUID(division_id) if division_id else None,
            email=claims["email"],
            name=claims["name"],
        )

    @classmethod
    def for_user(cls, user: User) -> "AuthContext":
        return cls(
            user_id=user.id,
            role=Role(user.role),
            division_id=user.division_id,
            email=user.email,
            name=user.name,
        )


def hash_password(plaintext: str) -> str:
    return generate_password_hash(plaintext)


def verify_password(plaintext: str, password_hash: str) -> bool:
    try:
        return check_password_hash(password_hash, plaintext)
    except ValueError:
        # unknown or malformed hash method
        return False


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.serializer = URLSafeTimedSerializer(settings.token_secret, salt=TOKEN_SALT)

    # --- Token flow ------------------------------------------------------
    def issue_token(self, context: AuthContext) -> str:
        return self.serializer.dumps(context.to_claims())

    def verify_token(self, token: str) -> AuthContext:
        if not token:
            raise Unauthenticated()
        try:
            claims = self.serializer.loads(token, max_age=settings.token_ttl_hours * 3600)
        except SignatureExpired as exc:
            raise Unauthenticated("Session expired") from exc
        except BadSignature as exc:
            raise Unauthenticated("Invalid token") from exc

        try:
            return AuthContext.from_claims(claims)
        except (KeyError, TypeError, ValueError) as exc:
            raise Unauthenticated("Invalid token") from exc

    # --- Login -----------------------------------------------------------
    def login(self, email: str, password: str) -> tuple[str, AuthContext]:
        normalized_email = normalize_email(email or "")
        user = (
            self.db.query(User)
            .filter(func.lower(User.email) == normalized_email)
            .one_or_none()
        )

        # same error for unknown, inactive and wrong password
        if user is None or not user.is_active or not verify_password(password or "", user.password_hash):
            record_login_attempt(success=False)
            logger.info("login_failed email=%s", normalized_email)
            raise InvalidCredentials()

        context = AuthContext.for_user(user)
        if not context.is_admin and load_settings(self.db).system_maintenance:
            raise ServiceUnavailable()
        token = self.issue_token(context)

        record_event(
            self.db,
            action="LOGIN",
            entity="USER",
            entity_id=user.id,
            user_id=user.id,
            meta={"email": user.email},
        )

        record_login_attempt(success=True)
        logger.info("user_login user_id=%s role=%s division_id=%s", user.id, context.role.value, user.division_id)
        return token, context
