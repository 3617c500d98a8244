from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

from dms.db.session import SessionLocal
from dms.models import Role, User
from dms.services.divisions import ensure_divisions
from dms.services.auth import hash_password, normalize_email

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@ministry.gov.lk"
DEFAULT_ADMIN_PASSWORD = "Admin@123"
DEFAULT_ADMIN_NAME = "System Administrator"


def seed_admin(session, email: str, password: str) -> bool:
    normalized = normalize_email(email)
    if session.query(User).filter(User.email == normalized).one_or_none() is not None:
        return False

    session.add(
        User(
            email=normalized,
            name=DEFAULT_ADMIN_NAME,
            password_hash=hash_password(password),
            role=Role.ADMIN,
            division_id=None,
            is_active=True,
        )
    )
    session.flush()
    return True


def run_seed(admin_email: str = DEFAULT_ADMIN_EMAIL, admin_password: str = DEFAULT_ADMIN_PASSWORD) -> None:
    session = SessionLocal()
    try:
        divisions_created = ensure_divisions(session)
        admin_created = seed_admin(session, admin_email, admin_password)
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    logger.info("Seed applied (new divisions=%s, admin created=%s)", divisions_created, admin_created)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_seed(
        os.getenv("SEED_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL),
        os.getenv("SEED_ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD),
    )
