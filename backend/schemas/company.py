from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from models.enums import CompanySize


class CompanyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    siret: str | None = Field(default=None, pattern=r"^[0-9]{14}$")
    sector: str | None = Field(default=None, min_length=2, max_length=50)
    size: CompanySize | None = None
    revenue: float | None = Field(default=None, ge=0)
    location: str | None = Field(default=None, min_length=2, max_length=100)
    address: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=30)
    website: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=1000)
    founded_year: int | None = Field(default=None, ge=1800, le=2100)
    employee_count: int | None = Field(default=None, ge=0)
    legal_form: str | None = Field(default=None, max_length=50)


class CompanyOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    siret: str | None = None
    sector: str
    size: CompanySize
    revenue: float | None = None
    location: str
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    description: str | None = None
    founded_year: int | None = None
    employee_count: int | None = None
    legal_form: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CompanyStatistics(BaseModel):
    total_applications: int
    applications_by_status: dict[str, int]
    approval_rate: float | None = None


class CompaniesOverview(BaseModel):
    total_companies: int
    companies_by_size: dict[str, int]
    companies_by_sector: dict[str, int]
