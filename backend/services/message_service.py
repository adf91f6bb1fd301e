from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import and_, func, select, update
from sqlalchemy.orm import Session

from core.errors import AuthorizationError, NotFoundError, ValidationError
from core.timeutils import utcnow
from models.application import Application
from models.company import Company
from models.message import Message
from models.program import Program
from services import notification_service
from services.access import Actor, counterpart_user_id, scope_applications
from services.application_service import load_for_actor, load_for_participant
from services.listing import paginate
from services.notification_service import NotificationStore


logger = logging.getLogger(__name__)


def list_messages(db: Session, actor: Actor, application_id: uuid.UUID) -> list[Message]:
    application, _program = load_for_actor(db, actor, application_id)
    stmt = (
        select(Message)
        .where(Message.application_id == application.id)
        .order_by(Message.created_at.asc(), Message.id)
    )
    return list(db.execute(stmt).scalars().all())


def send_message(
    db: Session,
    actor: Actor,
    application_id: uuid.UUID,
    content: str,
    attachments: list[Any] | None = None,
    *,
    notifier: NotificationStore | None = None,
) -> Message:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Message content is required", code="MESSAGE_CONTENT_REQUIRED")

    application, program = load_for_participant(db, actor, application_id)
    message = Message(
        application_id=application.id,
        sender_id=actor.user_id,
        content=content,
        attachments=list(attachments or []),
        created_at=utcnow(),
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    logger.info("message sent message_id=%s application_id=%s by=%s", message.id, application.id, actor.user_id)

    if notifier is not None:
        recipient = counterpart_user_id(db, actor, application, program)
        if recipient is not None and recipient != actor.user_id:
            notification_service.notify_new_message(
                notifier,
                user_id=recipient,
                application_id=application.id,
                message_id=message.id,
                sender_email=actor.email,
            )
    return message


def _get_message(db: Session, actor: Actor, message_id: uuid.UUID, *, loader=load_for_actor) -> Message:
    message = db.get(Message, message_id)
    if message is None:
        raise NotFoundError("Message not found", code="MESSAGE_NOT_FOUND")
    loader(db, actor, message.application_id)
    return message


def mark_read(db: Session, actor: Actor, message_id: uuid.UUID) -> Message:
    """Mark a received message read; the sender's own messages are left untouched."""

    message = _get_message(db, actor, message_id, loader=load_for_participant)
    if message.sender_id != actor.user_id and message.read_at is None:
        message.read_at = utcnow()
        db.commit()
        db.refresh(message)
    return message


def mark_all_read(db: Session, actor: Actor, application_id: uuid.UUID) -> int:
    application, _program = load_for_participant(db, actor, application_id)
    result = db.execute(
        update(Message)
        .where(Message.application_id == application.id)
        .where(Message.sender_id != actor.user_id)
        .where(Message.read_at.is_(None))
        .values(read_at=utcnow())
    )
    db.commit()
    return int(result.rowcount or 0)


def delete_message(db: Session, actor: Actor, message_id: uuid.UUID) -> None:
    message = _get_message(db, actor, message_id)
    if not (actor.is_staff or message.sender_id == actor.user_id):
        raise AuthorizationError("Only the sender can delete this message", code="MESSAGE_FORBIDDEN")
    db.delete(message)
    db.commit()
    logger.info("message deleted message_id=%s by=%s", message_id, actor.user_id)


def _unread_clause(actor: Actor):
    return and_(Message.sender_id != actor.user_id, Message.read_at.is_(None))


def unread_count(db: Session, actor: Actor) -> int:
    visible = scope_applications(select(Application.id), actor)
    stmt = (
        select(func.count())
        .select_from(Message)
        .where(Message.application_id.in_(visible))
        .where(_unread_clause(actor))
    )
    return int(db.execute(stmt).scalar_one())


def list_conversations(db: Session, actor: Actor, *, page: int = 1, limit: int = 10) -> dict[str, Any]:
    """Applications visible to ``actor`` that have messages, most recent activity first."""

    last_at = (
        select(Message.application_id, func.max(Message.created_at).label("last_at"))
        .group_by(Message.application_id)
        .subquery()
    )
    stmt = scope_applications(
        select(Application).join(last_at, last_at.c.application_id == Application.id),
        actor,
    ).order_by(last_at.c.last_at.desc(), Application.id)
    result = paginate(db, stmt, page=page, limit=limit)

    items = []
    for application in result.items:
        program = db.get(Program, application.program_id)
        company = db.get(Company, application.company_id)
        last_message = db.execute(
            select(Message)
            .where(Message.application_id == application.id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(1)
        ).scalar_one_or_none()
        unread = db.execute(
            select(func.count())
            .select_from(Message)
            .where(Message.application_id == application.id)
            .where(_unread_clause(actor))
        ).scalar_one()
        items.append(
            {
                "application_id": application.id,
                "program_id": application.program_id,
                "program_title": program.title if program is not None else "",
                "company_id": application.company_id,
                "company_name": company.name if company is not None else "",
                "status": application.status.value,
                "last_message": last_message,
                "unread_count": int(unread),
            }
        )
    return {"items": items, "result": result}
