from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from api.deps import get_current_actor, get_notification_store
from core.database import get_db
from schemas.common import ApiResponse, ok
from schemas.document import DocumentOut, DocumentUpdate
from services import document_service
from services.access import Actor
from services.notification_service import NotificationStore


router = APIRouter()


@router.post("/upload/{application_id}", response_model=ApiResponse[DocumentOut], status_code=201)
def upload_document(
    application_id: uuid.UUID,
    document: UploadFile = File(...),
    description: str | None = Form(default=None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    notifier: NotificationStore = Depends(get_notification_store),
) -> dict:
    try:
        saved = document_service.upload_document(
            db,
            actor,
            application_id,
            original_name=document.filename or "",
            mimetype=document.content_type or "application/octet-stream",
            stream=document.file,
            description=description,
            notifier=notifier,
        )
    finally:
        document.file.close()
    return ok(DocumentOut.model_validate(saved), "Document uploaded")


@router.get("/application/{application_id}", response_model=ApiResponse[list[DocumentOut]])
def list_documents(
    application_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    documents = document_service.list_documents(db, actor, application_id)
    return ok([DocumentOut.model_validate(d) for d in documents])


@router.get("/download/{document_id}")
def download_document(
    document_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> FileResponse:
    document, path = document_service.document_file(db, actor, document_id)
    return FileResponse(path, media_type=document.mimetype, filename=document.original_name)


@router.patch("/{document_id}", response_model=ApiResponse[DocumentOut])
def update_document(
    document_id: uuid.UUID,
    payload: DocumentUpdate,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    document = document_service.update_document(db, actor, document_id, payload)
    return ok(DocumentOut.model_validate(document), "Document updated")


@router.delete("/{document_id}", response_model=ApiResponse[None])
def delete_document(
    document_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    document_service.delete_document(db, actor, document_id)
    return ok(message="Document deleted")
