from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class DocumentUpdate(BaseModel):
    original_name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=1000)


class DocumentOut(BaseModel):
    id: uuid.UUID
    application_id: uuid.UUID
    uploaded_by: uuid.UUID | None = None
    filename: str
    original_name: str
    mimetype: str
    size: int
    description: str | None = None
    uploaded_at: datetime

    class Config:
        from_attributes = True
