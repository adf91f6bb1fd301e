from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from models.enums import CompanySize, ProgramStatus


class ProgramBase(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    sector: list[str] = Field(min_length=1)
    location: list[str] = Field(min_length=1)
    company_size: list[CompanySize] = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)
    amount_min: float | None = Field(default=None, ge=0)
    amount_max: float | None = Field(default=None, ge=0)
    deadline: datetime | None = None
    criteria: dict[str, Any] = Field(default_factory=dict)
    requirements: dict[str, Any] | None = None
    application_form: Any | None = None

    @model_validator(mode="after")
    def _check_amount_range(self):
        if self.amount_min is not None and self.amount_max is not None and self.amount_min > self.amount_max:
            raise ValueError("amount_min must be less than or equal to amount_max")
        return self


class ProgramCreate(ProgramBase):
    # Required for ADMIN/SUPERADMIN; ignored for ORGANIZATION users (their own organization is used).
    organization_id: uuid.UUID | None = None


class ProgramUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=5000)
    sector: list[str] | None = Field(default=None, min_length=1)
    location: list[str] | None = Field(default=None, min_length=1)
    company_size: list[CompanySize] | None = Field(default=None, min_length=1)
    tags: list[str] | None = None
    amount_min: float | None = Field(default=None, ge=0)
    amount_max: float | None = Field(default=None, ge=0)
    deadline: datetime | None = None
    criteria: dict[str, Any] | None = None
    requirements: dict[str, Any] | None = None
    application_form: Any | None = None


class ProgramStatusUpdate(BaseModel):
    status: ProgramStatus


class ProgramOut(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    title: str
    description: str
    sector: list[str]
    location: list[str]
    company_size: list[str]
    tags: list[str]
    amount_min: float | None = None
    amount_max: float | None = None
    deadline: datetime | None = None
    criteria: dict[str, Any]
    requirements: dict[str, Any] | None = None
    application_form: Any | None = None
    status: ProgramStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
