from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from api.deps import get_current_actor, get_notification_store
from schemas.common import ApiResponse, ok, pagination_of
from schemas.message import UnreadCount
from schemas.notification import (
    NotificationOut,
    NotificationPage,
    NotificationPreferencesOut,
    NotificationPreferencesUpdate,
)
from services import notification_service
from services.access import Actor
from services.notification_service import NotificationStore


router = APIRouter()


@router.get("", response_model=ApiResponse[NotificationPage])
def list_notifications(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    store: NotificationStore = Depends(get_notification_store),
) -> dict:
    result, unread = notification_service.list_notifications(store, actor.user_id, page=page, limit=limit)
    return ok(
        NotificationPage(
            items=[NotificationOut.model_validate(n) for n in result.items],
            pagination=pagination_of(result),
            unread_count=unread,
        )
    )


@router.get("/unread-count", response_model=ApiResponse[UnreadCount])
def unread_count(
    actor: Actor = Depends(get_current_actor),
    store: NotificationStore = Depends(get_notification_store),
) -> dict:
    return ok(UnreadCount(unread_count=notification_service.unread_count(store, actor.user_id)))


@router.get("/preferences", response_model=ApiResponse[NotificationPreferencesOut])
def get_preferences(
    actor: Actor = Depends(get_current_actor),
    store: NotificationStore = Depends(get_notification_store),
) -> dict:
    return ok(notification_service.preferences_payload(store.get_preferences(actor.user_id)))


@router.patch("/preferences", response_model=ApiResponse[NotificationPreferencesOut])
def update_preferences(
    payload: NotificationPreferencesUpdate,
    actor: Actor = Depends(get_current_actor),
    store: NotificationStore = Depends(get_notification_store),
) -> dict:
    prefs = notification_service.update_preferences(
        store,
        actor.user_id,
        email_notifications=payload.email_notifications,
        browser_notifications=payload.browser_notifications,
        types=payload.types,
    )
    return ok(prefs, "Preferences updated")


@router.patch("/read-all", response_model=ApiResponse[dict])
def mark_all_read(
    actor: Actor = Depends(get_current_actor),
    store: NotificationStore = Depends(get_notification_store),
) -> dict:
    return ok({"updated": store.mark_all_read(actor.user_id)}, "Notifications marked as read")


@router.delete("", response_model=ApiResponse[dict])
def delete_all(
    actor: Actor = Depends(get_current_actor),
    store: NotificationStore = Depends(get_notification_store),
) -> dict:
    return ok({"deleted": store.delete_all(actor.user_id)}, "Notifications deleted")


@router.patch("/{notification_id}/read", response_model=ApiResponse[NotificationOut])
def mark_read(
    notification_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    store: NotificationStore = Depends(get_notification_store),
) -> dict:
    notification = notification_service.mark_read(store, actor.user_id, notification_id)
    return ok(NotificationOut.model_validate(notification))


@router.delete("/{notification_id}", response_model=ApiResponse[None])
def delete_notification(
    notification_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    store: NotificationStore = Depends(get_notification_store),
) -> dict:
    notification_service.delete_notification(store, actor.user_id, notification_id)
    return ok(message="Notification deleted")
