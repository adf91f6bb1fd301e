from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps import get_current_actor, get_notification_store
from core.database import get_db
from schemas.common import ApiResponse, Page, ok, pagination_of
from schemas.message import ConversationOut, MessageCreate, MessageOut, UnreadCount
from services import message_service
from services.access import Actor
from services.notification_service import NotificationStore


router = APIRouter()


def _conversation(item: dict) -> ConversationOut:
    last = item["last_message"]
    return ConversationOut(**{**item, "last_message": MessageOut.model_validate(last) if last is not None else None})


@router.get("/unread-count", response_model=ApiResponse[UnreadCount])
def unread_count(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)) -> dict:
    return ok(UnreadCount(unread_count=message_service.unread_count(db, actor)))


@router.get("/conversations", response_model=ApiResponse[Page[ConversationOut]])
def conversations(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    listing = message_service.list_conversations(db, actor, page=page, limit=limit)
    return ok(
        {
            "items": [_conversation(item) for item in listing["items"]],
            "pagination": pagination_of(listing["result"]),
        }
    )


@router.get("/application/{application_id}", response_model=ApiResponse[list[MessageOut]])
def list_messages(
    application_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    return ok([MessageOut.model_validate(m) for m in message_service.list_messages(db, actor, application_id)])


@router.post("/application/{application_id}", response_model=ApiResponse[MessageOut], status_code=201)
def send_message(
    application_id: uuid.UUID,
    payload: MessageCreate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    notifier: NotificationStore = Depends(get_notification_store),
) -> dict:
    message = message_service.send_message(
        db, actor, application_id, payload.content, payload.attachments, notifier=notifier
    )
    return ok(MessageOut.model_validate(message), "Message sent")


@router.patch("/application/{application_id}/read-all", response_model=ApiResponse[dict])
def mark_all_read(
    application_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    updated = message_service.mark_all_read(db, actor, application_id)
    return ok({"updated": updated}, "Messages marked as read")


@router.patch("/{message_id}/read", response_model=ApiResponse[MessageOut])
def mark_read(
    message_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    return ok(MessageOut.model_validate(message_service.mark_read(db, actor, message_id)))


@router.delete("/{message_id}", response_model=ApiResponse[None])
def delete_message(
    message_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    message_service.delete_message(db, actor, message_id)
    return ok(message="Message deleted")
