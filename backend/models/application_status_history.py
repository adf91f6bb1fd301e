from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Text, Uuid
from sqlalchemy.sql import func

from models.base import Base
from models.enums import ApplicationStatus


class ApplicationStatusHistory(Base):
    __tablename__ = "application_status_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    application_id = Column(Uuid, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(Enum(ApplicationStatus, name="application_status", native_enum=False, length=20), nullable=True)
    new_status = Column(Enum(ApplicationStatus, name="application_status", native_enum=False, length=20), nullable=False)
    changed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
