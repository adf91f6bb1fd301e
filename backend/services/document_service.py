from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import BinaryIO

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import AuthorizationError, NotFoundError, ValidationError
from core.timeutils import utcnow
from models.document import Document
from schemas.document import DocumentUpdate
from services import notification_service
from services.access import Actor, counterpart_user_id
from services.application_service import load_for_actor, load_for_participant
from services.file_storage import remove_files, storage_root
from services.notification_service import NotificationStore


logger = logging.getLogger(__name__)

ALLOWED_MIMETYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "image/jpeg",
        "image/png",
        "image/gif",
        "text/plain",
    }
)

_CHUNK_SIZE = 64 * 1024


def _write_stream(stream: BinaryIO, target: Path, max_bytes: int) -> int:
    size = 0
    try:
        with target.open("wb") as out:
            while True:
                chunk = stream.read(_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_bytes:
                    raise ValidationError(
                        f"File exceeds the {max_bytes // (1024 * 1024)} MB limit",
                        code="FILE_TOO_LARGE",
                    )
                out.write(chunk)
    except Exception:
        target.unlink(missing_ok=True)
        raise
    if size == 0:
        target.unlink(missing_ok=True)
        raise ValidationError("Uploaded file is empty", code="EMPTY_FILE")
    return size


def upload_document(
    db: Session,
    actor: Actor,
    application_id: uuid.UUID,
    *,
    original_name: str,
    mimetype: str,
    stream: BinaryIO,
    description: str | None = None,
    notifier: NotificationStore | None = None,
) -> Document:
    application, program = load_for_participant(db, actor, application_id)

    original_name = Path(original_name or "").name.strip()
    if not original_name:
        raise ValidationError("No file provided", code="FILE_REQUIRED")
    if mimetype not in ALLOWED_MIMETYPES:
        raise ValidationError(f"File type not allowed: {mimetype}", code="UNSUPPORTED_FILE_TYPE")

    suffix = Path(original_name).suffix.lower()[:16]
    filename = f"{uuid.uuid4().hex}{suffix}"
    target = storage_root() / filename
    size = _write_stream(stream, target, int(settings.max_upload_bytes))

    document = Document(
        application_id=application.id,
        uploaded_by=actor.user_id,
        filename=filename,
        original_name=original_name[:255],
        mimetype=mimetype,
        size=size,
        path=str(target),
        description=description,
        uploaded_at=utcnow(),
    )
    db.add(document)
    try:
        db.commit()
    except Exception:
        db.rollback()
        target.unlink(missing_ok=True)
        raise
    db.refresh(document)
    logger.info(
        "document uploaded document_id=%s application_id=%s size=%s by=%s",
        document.id,
        application.id,
        size,
        actor.user_id,
    )

    if notifier is not None:
        recipient = counterpart_user_id(db, actor, application, program)
        if recipient is not None and recipient != actor.user_id:
            notification_service.notify_document_uploaded(
                notifier,
                user_id=recipient,
                application_id=application.id,
                document_id=document.id,
                document_name=document.original_name,
                uploader_email=actor.email,
            )
    return document


def list_documents(db: Session, actor: Actor, application_id: uuid.UUID) -> list[Document]:
    application, _program = load_for_actor(db, actor, application_id)
    stmt = (
        select(Document)
        .where(Document.application_id == application.id)
        .order_by(Document.uploaded_at.desc(), Document.id)
    )
    return list(db.execute(stmt).scalars().all())


def get_document(db: Session, actor: Actor, document_id: uuid.UUID) -> Document:
    document = db.get(Document, document_id)
    if document is None:
        raise NotFoundError("Document not found", code="DOCUMENT_NOT_FOUND")
    load_for_actor(db, actor, document.application_id)
    return document


def document_file(db: Session, actor: Actor, document_id: uuid.UUID) -> tuple[Document, Path]:
    document = get_document(db, actor, document_id)
    path = Path(document.path)
    if not path.is_file():
        logger.warning("document file missing document_id=%s path=%s", document.id, path)
        raise NotFoundError("Document file not found", code="DOCUMENT_FILE_MISSING")
    return document, path


def _editable(db: Session, actor: Actor, document_id: uuid.UUID) -> Document:
    document = get_document(db, actor, document_id)
    if not (actor.is_staff or document.uploaded_by == actor.user_id):
        raise AuthorizationError("Only the uploader can change this document", code="DOCUMENT_FORBIDDEN")
    return document


def update_document(db: Session, actor: Actor, document_id: uuid.UUID, patch: DocumentUpdate) -> Document:
    document = _editable(db, actor, document_id)
    values = patch.model_dump(exclude_unset=True)
    if "original_name" in values and values["original_name"] is None:
        values.pop("original_name")
    for key, value in values.items():
        setattr(document, key, value)
    db.commit()
    db.refresh(document)
    return document


def delete_document(db: Session, actor: Actor, document_id: uuid.UUID) -> None:
    document = _editable(db, actor, document_id)
    path = Path(document.path)
    db.delete(document)
    db.commit()
    remove_files([path])
    logger.info("document deleted document_id=%s by=%s", document_id, actor.user_id)
