from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.sql import func

from models.base import Base, JSONType
from models.enums import ProgramStatus


class Program(Base):
    __tablename__ = "programs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id = Column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    # Tag sets, stored as JSON arrays of strings.
    sector = Column(JSONType, nullable=False, default=list)
    location = Column(JSONType, nullable=False, default=list)
    company_size = Column(JSONType, nullable=False, default=list)
    tags = Column(JSONType, nullable=False, default=list)
    amount_min = Column(Numeric(16, 2, asdecimal=False), nullable=True)
    amount_max = Column(Numeric(16, 2, asdecimal=False), nullable=True)
    deadline = Column(DateTime(timezone=True), nullable=True, index=True)
    criteria = Column(JSONType, nullable=False, default=dict)
    requirements = Column(JSONType, nullable=True)
    application_form = Column(JSONType, nullable=True)
    status = Column(
        Enum(ProgramStatus, name="program_status", native_enum=False, length=20),
        nullable=False,
        default=ProgramStatus.DRAFT,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "amount_min IS NULL OR amount_max IS NULL OR amount_min <= amount_max",
            name="ck_programs_amount_range",
        ),
    )
