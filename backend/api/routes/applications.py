from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps import get_current_actor, get_notification_store, require_roles
from core.database import get_db
from models.enums import ApplicationStatus, UserRole
from schemas.application import (
    ApplicationCreate,
    ApplicationOut,
    ApplicationReview,
    ApplicationStatusUpdate,
    ApplicationUpdate,
    StatusHistoryOut,
)
from schemas.common import ApiResponse, Page, StatusBreakdown, ok, page_payload
from services import application_service
from services.access import Actor
from services.notification_service import NotificationStore


router = APIRouter()

_company = require_roles(UserRole.COMPANY)
_reviewers = require_roles(UserRole.ORGANIZATION, UserRole.ADMIN, UserRole.SUPERADMIN)
_readers = require_roles(UserRole.ORGANIZATION, UserRole.ADMIN, UserRole.SUPERADMIN, UserRole.ANALYST)


@router.post("", response_model=ApiResponse[ApplicationOut], status_code=201)
def create_application(
    payload: ApplicationCreate,
    actor: Actor = Depends(_company),
    db: Session = Depends(get_db),
) -> dict:
    application = application_service.create_application(db, actor, payload.program_id, payload.data)
    return ok(ApplicationOut.model_validate(application), "Application created")


@router.get("/my-applications", response_model=ApiResponse[Page[ApplicationOut]])
def my_applications(
    status: ApplicationStatus | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(_company),
    db: Session = Depends(get_db),
) -> dict:
    result = application_service.list_my_applications(
        db, actor, status=status, search=search, page=page, limit=limit
    )
    return ok(page_payload(result, ApplicationOut))


@router.get("", response_model=ApiResponse[Page[ApplicationOut]])
def list_applications(
    status: ApplicationStatus | None = None,
    program_id: uuid.UUID | None = Query(default=None, alias="programId"),
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(_readers),
    db: Session = Depends(get_db),
) -> dict:
    result = application_service.list_applications(
        db,
        actor,
        status=status,
        program_id=program_id,
        search=search,
        page=page,
        limit=limit,
    )
    return ok(page_payload(result, ApplicationOut))


@router.get("/statistics/overview", response_model=ApiResponse[StatusBreakdown])
def statistics_overview(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    return ok(application_service.application_statistics(db, actor))


@router.get("/program/{program_id}", response_model=ApiResponse[Page[ApplicationOut]])
def applications_by_program(
    program_id: uuid.UUID,
    status: ApplicationStatus | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(_readers),
    db: Session = Depends(get_db),
) -> dict:
    result = application_service.list_program_applications(
        db, actor, program_id, status=status, page=page, limit=limit
    )
    return ok(page_payload(result, ApplicationOut))


@router.get("/{application_id}", response_model=ApiResponse[ApplicationOut])
def get_application(
    application_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    return ok(ApplicationOut.model_validate(application_service.get_application(db, actor, application_id)))


@router.get("/{application_id}/history", response_model=ApiResponse[list[StatusHistoryOut]])
def application_history(
    application_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> dict:
    rows = application_service.status_history(db, actor, application_id)
    return ok([StatusHistoryOut.model_validate(r) for r in rows])


@router.put("/{application_id}", response_model=ApiResponse[ApplicationOut])
def update_application(
    application_id: uuid.UUID,
    payload: ApplicationUpdate,
    actor: Actor = Depends(_company),
    db: Session = Depends(get_db),
) -> dict:
    application = application_service.update_application(db, actor, application_id, payload.data)
    return ok(ApplicationOut.model_validate(application), "Application updated")


@router.post("/{application_id}/submit", response_model=ApiResponse[ApplicationOut])
def submit_application(
    application_id: uuid.UUID,
    actor: Actor = Depends(_company),
    db: Session = Depends(get_db),
    notifier: NotificationStore = Depends(get_notification_store),
) -> dict:
    application = application_service.submit_application(db, actor, application_id, notifier=notifier)
    return ok(ApplicationOut.model_validate(application), "Application submitted")


@router.delete("/{application_id}", response_model=ApiResponse[None])
def delete_application(
    application_id: uuid.UUID,
    actor: Actor = Depends(_company),
    db: Session = Depends(get_db),
) -> dict:
    application_service.delete_application(db, actor, application_id)
    return ok(message="Application deleted")


@router.patch("/{application_id}/status", response_model=ApiResponse[ApplicationOut])
def update_application_status(
    application_id: uuid.UUID,
    payload: ApplicationStatusUpdate,
    actor: Actor = Depends(_reviewers),
    db: Session = Depends(get_db),
    notifier: NotificationStore = Depends(get_notification_store),
) -> dict:
    application = application_service.update_status(
        db, actor, application_id, payload.status, reason=payload.reason, notifier=notifier
    )
    return ok(ApplicationOut.model_validate(application), "Application status updated")


@router.post("/{application_id}/review", response_model=ApiResponse[ApplicationOut])
def review_application(
    application_id: uuid.UUID,
    payload: ApplicationReview,
    actor: Actor = Depends(_reviewers),
    db: Session = Depends(get_db),
    notifier: NotificationStore = Depends(get_notification_store),
) -> dict:
    application = application_service.review_application(
        db, actor, application_id, payload.score, payload.comments, notifier=notifier
    )
    return ok(ApplicationOut.model_validate(application), "Application reviewed")
