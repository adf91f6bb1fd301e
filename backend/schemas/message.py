from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    content: str = Field(max_length=10000)
    attachments: list[Any] = Field(default_factory=list)


class MessageOut(BaseModel):
    id: uuid.UUID
    application_id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    attachments: list[Any]
    read_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    unread_count: int


class ConversationOut(BaseModel):
    application_id: uuid.UUID
    program_id: uuid.UUID
    program_title: str
    company_id: uuid.UUID
    company_name: str
    status: str
    last_message: MessageOut | None = None
    unread_count: int = 0
