from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.config import settings
from core.database import ENGINE, SessionLocal
from core.security import hash_password
from models import Base
from models.enums import UserRole
from models.user import User


logger = logging.getLogger(__name__)


def ensure_superadmin(db: Session, email: str, password: str | None = None) -> tuple[User, bool]:
    """Create ``email`` as SUPERADMIN, or promote the existing user. Returns (user, created)."""

    email = email.strip().lower()
    user = db.execute(select(User).where(func.lower(User.email) == email)).scalar_one_or_none()
    if user is None:
        if not password:
            raise ValueError("password is required to create a new superadmin")
        user = User(
            email=email,
            password_hash=hash_password(password),
            role=UserRole.SUPERADMIN,
            is_active=True,
            is_verified=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user, True

    if user.role != UserRole.SUPERADMIN or not user.is_active:
        user.role = UserRole.SUPERADMIN
        user.is_active = True
        db.commit()
        db.refresh(user)
    return user, False


def _seed_superadmin_if_configured() -> None:
    email = settings.seed_superadmin_email
    password = settings.seed_superadmin_password
    if not email or not password:
        return

    with SessionLocal() as db:
        user, created = ensure_superadmin(db, email, password)
    if created:
        logger.warning(
            "Seeded initial superadmin from env (email=%r). Change the password after first login.",
            user.email,
        )


def bootstrap_database() -> None:
    """Create missing tables and optionally seed a superadmin.

    Safe to run on every startup.
    """

    Base.metadata.create_all(bind=ENGINE)
    _seed_superadmin_if_configured()
