from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.sql import func

from models.base import Base
from models.enums import CompanySize


class Company(Base):
    __tablename__ = "companies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)
    siret = Column(String(14), nullable=True, unique=True)
    sector = Column(String(50), nullable=False)
    size = Column(Enum(CompanySize, name="company_size", native_enum=False, length=10), nullable=False)
    revenue = Column(Numeric(16, 2, asdecimal=False), nullable=True)
    location = Column(String(100), nullable=False)
    address = Column(String(200), nullable=True)
    phone = Column(String(30), nullable=True)
    website = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    founded_year = Column(Integer, nullable=True)
    employee_count = Column(Integer, nullable=True)
    legal_form = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("revenue IS NULL OR revenue >= 0", name="ck_companies_revenue"),
        CheckConstraint("employee_count IS NULL OR employee_count >= 0", name="ck_companies_employee_count"),
    )
