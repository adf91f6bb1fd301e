from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from models.enums import ApplicationStatus


class ApplicationCreate(BaseModel):
    program_id: uuid.UUID
    data: dict[str, Any] = Field(default_factory=dict)


class ApplicationUpdate(BaseModel):
    data: dict[str, Any]


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus
    reason: str | None = Field(default=None, max_length=5000)


class ApplicationReview(BaseModel):
    score: float = Field(ge=0, le=100)
    comments: str | None = Field(default=None, max_length=5000)


class ApplicationOut(BaseModel):
    id: uuid.UUID
    program_id: uuid.UUID
    company_id: uuid.UUID
    data: dict[str, Any]
    status: ApplicationStatus
    score: float | None = None
    review_comments: str | None = None
    reviewed_by: uuid.UUID | None = None
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StatusHistoryOut(BaseModel):
    id: uuid.UUID
    application_id: uuid.UUID
    old_status: ApplicationStatus | None = None
    new_status: ApplicationStatus
    changed_by: uuid.UUID | None = None
    reason: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True
