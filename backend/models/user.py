from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum, String, Text, Uuid
from sqlalchemy.sql import func

from models.base import Base
from models.enums import UserRole


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    role = Column(Enum(UserRole, name="user_role", native_enum=False, length=20), nullable=False, default=UserRole.COMPANY)
    is_active = Column(Boolean, nullable=False, default=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
