"""Notification persistence and the workflow events that produce notifications.

Storage goes through a :class:`NotificationStore`. Routes receive a
``SqlNotificationStore`` bound to the request session (see
``api.deps.get_notification_store``); tests may swap in the
``InMemoryNotificationStore``.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from core.errors import NotFoundError
from core.timeutils import utcnow
from models.enums import ApplicationStatus, NotificationType
from models.notification import Notification, NotificationPreference
from services.listing import PageResult


logger = logging.getLogger(__name__)


class NotificationStore(Protocol):
    def add(self, notification: Notification) -> Notification: ...

    def list_for_user(self, user_id: uuid.UUID, *, offset: int, limit: int) -> list[Notification]: ...

    def count_for_user(self, user_id: uuid.UUID, *, unread_only: bool = False) -> int: ...

    def get(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification | None: ...

    def mark_read(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification | None: ...

    def mark_all_read(self, user_id: uuid.UUID) -> int: ...

    def delete(self, notification_id: uuid.UUID, user_id: uuid.UUID) -> bool: ...

    def delete_all(self, user_id: uuid.UUID) -> int: ...

    def get_preferences(self, user_id: uuid.UUID) -> NotificationPreference | None: ...

    def save_preferences(self, preferences: NotificationPreference) -> NotificationPreference: ...


class SqlNotificationStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def add(self, notification: Notification) -> Notification:
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def list_for_user(self, user_id, *, offset, limit):
        stmt = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id)
            .offset(offset)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_for_user(self, user_id, *, unread_only=False):
        stmt = select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        return int(self.db.execute(stmt).scalar_one())

    def get(self, notification_id, user_id):
        return self.db.execute(
            select(Notification).where(Notification.id == notification_id).where(Notification.user_id == user_id)
        ).scalar_one_or_none()

    def mark_read(self, notification_id, user_id):
        notification = self.get(notification_id, user_id)
        if notification is None:
            return None
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_read(self, user_id):
        result = self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id)
            .where(Notification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
        )
        self.db.commit()
        return int(result.rowcount or 0)

    def delete(self, notification_id, user_id):
        notification = self.get(notification_id, user_id)
        if notification is None:
            return False
        self.db.delete(notification)
        self.db.commit()
        return True

    def delete_all(self, user_id):
        result = self.db.execute(delete(Notification).where(Notification.user_id == user_id))
        self.db.commit()
        return int(result.rowcount or 0)

    def get_preferences(self, user_id):
        return self.db.execute(
            select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        ).scalar_one_or_none()

    def save_preferences(self, preferences):
        self.db.add(preferences)
        self.db.commit()
        self.db.refresh(preferences)
        return preferences


class InMemoryNotificationStore:
    """Process-local store; state lives on the instance only."""

    def __init__(self) -> None:
        self._notifications: dict[uuid.UUID, Notification] = {}
        self._preferences: dict[uuid.UUID, NotificationPreference] = {}

    def add(self, notification):
        if notification.id is None:
            notification.id = uuid.uuid4()
        self._notifications[notification.id] = notification
        return notification

    def _for_user(self, user_id) -> list[Notification]:
        rows = [n for n in self._notifications.values() if n.user_id == user_id]
        rows.sort(key=lambda n: n.created_at, reverse=True)
        return rows

    def list_for_user(self, user_id, *, offset, limit):
        return self._for_user(user_id)[offset : offset + limit]

    def count_for_user(self, user_id, *, unread_only=False):
        return sum(1 for n in self._for_user(user_id) if not (unread_only and n.is_read))

    def get(self, notification_id, user_id):
        notification = self._notifications.get(notification_id)
        if notification is None or notification.user_id != user_id:
            return None
        return notification

    def mark_read(self, notification_id, user_id):
        notification = self.get(notification_id, user_id)
        if notification is not None and not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
        return notification

    def mark_all_read(self, user_id):
        changed = 0
        for notification in self._for_user(user_id):
            if not notification.is_read:
                notification.is_read = True
                notification.read_at = utcnow()
                changed += 1
        return changed

    def delete(self, notification_id, user_id):
        if self.get(notification_id, user_id) is None:
            return False
        del self._notifications[notification_id]
        return True

    def delete_all(self, user_id):
        ids = [n.id for n in self._for_user(user_id)]
        for notification_id in ids:
            del self._notifications[notification_id]
        return len(ids)

    def get_preferences(self, user_id):
        return self._preferences.get(user_id)

    def save_preferences(self, preferences):
        self._preferences[preferences.user_id] = preferences
        return preferences


def type_enabled(preferences: NotificationPreference | None, notification_type: NotificationType) -> bool:
    if preferences is None:
        return True
    return bool((preferences.types or {}).get(NotificationType(notification_type).value, True))


def create_notification(
    store: NotificationStore,
    *,
    user_id: uuid.UUID,
    notification_type: NotificationType,
    title: str,
    message: str,
    data: dict[str, Any] | None = None,
    application_id: uuid.UUID | None = None,
    related_entity_type: str | None = None,
    related_entity_id: uuid.UUID | None = None,
) -> Notification | None:
    """Persist a notification unless the recipient disabled its type."""

    if not type_enabled(store.get_preferences(user_id), notification_type):
        logger.debug("notification skipped user_id=%s type=%s", user_id, notification_type.value)
        return None

    notification = Notification(
        id=uuid.uuid4(),
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        data=data,
        application_id=application_id,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        is_read=False,
        created_at=utcnow(),
    )
    notification = store.add(notification)
    logger.debug("notification created user_id=%s type=%s", user_id, notification_type.value)
    return notification


_STATUS_LABELS = {
    ApplicationStatus.DRAFT: "draft",
    ApplicationStatus.SUBMITTED: "submitted",
    ApplicationStatus.UNDER_REVIEW: "under review",
    ApplicationStatus.APPROVED: "approved",
    ApplicationStatus.REJECTED: "rejected",
}


def notify_application_submitted(store, *, user_id, application_id, program_title: str, company_name: str):
    return create_notification(
        store,
        user_id=user_id,
        notification_type=NotificationType.APPLICATION_STATUS_CHANGE,
        title="New application submitted",
        message=f"{company_name} submitted an application to {program_title}.",
        data={"status": ApplicationStatus.SUBMITTED.value},
        application_id=application_id,
        related_entity_type="application",
        related_entity_id=application_id,
    )


def notify_application_status(store, *, user_id, application_id, program_title: str, status: ApplicationStatus):
    label = _STATUS_LABELS.get(ApplicationStatus(status), str(status))
    return create_notification(
        store,
        user_id=user_id,
        notification_type=NotificationType.APPLICATION_STATUS_CHANGE,
        title="Application status updated",
        message=f"Your application to {program_title} is now {label}.",
        data={"status": ApplicationStatus(status).value},
        application_id=application_id,
        related_entity_type="application",
        related_entity_id=application_id,
    )


def notify_application_reviewed(store, *, user_id, application_id, program_title: str, score: float):
    return create_notification(
        store,
        user_id=user_id,
        notification_type=NotificationType.APPLICATION_REVIEWED,
        title="Application reviewed",
        message=f"Your application to {program_title} was reviewed (score {score:g}/100).",
        data={"score": score},
        application_id=application_id,
        related_entity_type="application",
        related_entity_id=application_id,
    )


def notify_new_message(store, *, user_id, application_id, message_id, sender_email: str):
    return create_notification(
        store,
        user_id=user_id,
        notification_type=NotificationType.NEW_MESSAGE,
        title="New message",
        message=f"New message from {sender_email}.",
        application_id=application_id,
        related_entity_type="message",
        related_entity_id=message_id,
    )


def notify_document_uploaded(store, *, user_id, application_id, document_id, document_name: str, uploader_email: str):
    return create_notification(
        store,
        user_id=user_id,
        notification_type=NotificationType.DOCUMENT_UPLOADED,
        title="New document",
        message=f"{uploader_email} uploaded {document_name}.",
        data={"document_name": document_name},
        application_id=application_id,
        related_entity_type="document",
        related_entity_id=document_id,
    )


def list_notifications(store: NotificationStore, user_id: uuid.UUID, *, page: int = 1, limit: int = 20) -> tuple[PageResult, int]:
    offset = (page - 1) * limit
    items = store.list_for_user(user_id, offset=offset, limit=limit)
    total = store.count_for_user(user_id)
    unread = store.count_for_user(user_id, unread_only=True)
    return PageResult(items=items, page=page, limit=limit, total=total), unread


def unread_count(store: NotificationStore, user_id: uuid.UUID) -> int:
    return store.count_for_user(user_id, unread_only=True)


def mark_read(store: NotificationStore, user_id: uuid.UUID, notification_id: uuid.UUID) -> Notification:
    notification = store.mark_read(notification_id, user_id)
    if notification is None:
        raise NotFoundError("Notification not found", code="NOTIFICATION_NOT_FOUND")
    return notification


def delete_notification(store: NotificationStore, user_id: uuid.UUID, notification_id: uuid.UUID) -> None:
    if not store.delete(notification_id, user_id):
        raise NotFoundError("Notification not found", code="NOTIFICATION_NOT_FOUND")


def preferences_payload(preferences: NotificationPreference | None) -> dict[str, Any]:
    types = {t.value: True for t in NotificationType}
    if preferences is None:
        return {"email_notifications": True, "browser_notifications": True, "types": types}
    types.update({k: bool(v) for k, v in (preferences.types or {}).items() if k in types})
    return {
        "email_notifications": bool(preferences.email_notifications),
        "browser_notifications": bool(preferences.browser_notifications),
        "types": types,
    }


def update_preferences(
    store: NotificationStore,
    user_id: uuid.UUID,
    *,
    email_notifications: bool | None = None,
    browser_notifications: bool | None = None,
    types: dict[NotificationType, bool] | None = None,
) -> dict[str, Any]:
    preferences = store.get_preferences(user_id)
    if preferences is None:
        preferences = NotificationPreference(
            id=uuid.uuid4(),
            user_id=user_id,
            email_notifications=True,
            browser_notifications=True,
            types={},
        )
    if email_notifications is not None:
        preferences.email_notifications = email_notifications
    if browser_notifications is not None:
        preferences.browser_notifications = browser_notifications
    if types:
        merged = dict(preferences.types or {})
        merged.update({NotificationType(k).value: bool(v) for k, v in types.items()})
        # Reassign so the JSON column is flagged dirty.
        preferences.types = merged
    preferences = store.save_preferences(preferences)
    return preferences_payload(preferences)
