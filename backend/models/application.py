from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, Float, ForeignKey, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from models.base import Base, JSONType
from models.enums import ApplicationStatus


class Application(Base):
    __tablename__ = "applications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    program_id = Column(Uuid, ForeignKey("programs.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(Uuid, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    data = Column(JSONType, nullable=False, default=dict)
    status = Column(
        Enum(ApplicationStatus, name="application_status", native_enum=False, length=20),
        nullable=False,
        default=ApplicationStatus.DRAFT,
        index=True,
    )
    score = Column(Float, nullable=True)
    review_comments = Column(Text, nullable=True)
    reviewed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("program_id", "company_id", name="uq_applications_program_company"),
        CheckConstraint("score IS NULL OR (score >= 0 AND score <= 100)", name="ck_applications_score"),
    )

    # Concurrent reviewers: the second UPDATE matches no row and raises StaleDataError.
    __mapper_args__ = {"version_id_col": version}
