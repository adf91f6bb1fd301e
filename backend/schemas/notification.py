from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from models.enums import NotificationType
from schemas.common import Pagination


class NotificationOut(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    data: dict[str, Any] | None = None
    application_id: uuid.UUID | None = None
    related_entity_type: str | None = None
    related_entity_id: uuid.UUID | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationPage(BaseModel):
    items: list[NotificationOut]
    pagination: Pagination
    unread_count: int


class NotificationPreferencesOut(BaseModel):
    email_notifications: bool
    browser_notifications: bool
    types: dict[NotificationType, bool]


class NotificationPreferencesUpdate(BaseModel):
    email_notifications: bool | None = None
    browser_notifications: bool | None = None
    types: dict[NotificationType, bool] | None = None
