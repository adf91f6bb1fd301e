"""Application lifecycle: DRAFT -> SUBMITTED -> UNDER_REVIEW -> APPROVED/REJECTED.

Companies own the DRAFT phase (create, edit, submit, delete). Reviewers
(staff, or the organization owning the program) drive every status after
submission. Each status change appends an ``ApplicationStatusHistory`` row.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from core.errors import (
    AuthorizationError,
    ConflictError,
    DeadlineExceededError,
    InvalidStateError,
    NotFoundError,
)
from core.timeutils import as_utc, utcnow
from models.application import Application
from models.application_status_history import ApplicationStatusHistory
from models.company import Company
from models.enums import ApplicationStatus, ProgramStatus, UserRole
from models.program import Program
from services import file_storage, notification_service
from services.access import (
    Actor,
    can_review_application,
    can_access_application,
    can_participate,
    company_user_id,
    organization_user_id,
    owns_application,
    owns_program,
    require_company,
    scope_applications,
)
from services.listing import PageResult, count_by, paginate, text_search
from services.notification_service import NotificationStore
from services.program_service import get_program, is_open_for_application


logger = logging.getLogger(__name__)


# Enforced only when strict transitions are enabled.
ALLOWED_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.DRAFT: frozenset({ApplicationStatus.SUBMITTED}),
    ApplicationStatus.SUBMITTED: frozenset(
        {ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.UNDER_REVIEW: frozenset(
        {ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED, ApplicationStatus.REJECTED}
    ),
    ApplicationStatus.APPROVED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}


def check_transition(old: ApplicationStatus, new: ApplicationStatus, *, strict: bool | None = None) -> None:
    if strict is None:
        strict = bool(settings.strict_status_transitions)
    if not strict:
        return
    allowed = ALLOWED_TRANSITIONS.get(ApplicationStatus(old), frozenset())
    if ApplicationStatus(new) not in allowed:
        names = ", ".join(sorted(s.value for s in allowed)) or "none (terminal state)"
        raise InvalidStateError(
            f"Cannot move application from {ApplicationStatus(old).value} to {ApplicationStatus(new).value}. "
            f"Allowed: {names}",
            code="INVALID_TRANSITION",
        )


def _record_transition(
    db: Session,
    application: Application,
    new_status: ApplicationStatus,
    *,
    changed_by: uuid.UUID,
    reason: str | None = None,
) -> ApplicationStatus:
    old_status = ApplicationStatus(application.status)
    db.add(
        ApplicationStatusHistory(
            application_id=application.id,
            old_status=old_status,
            new_status=new_status,
            changed_by=changed_by,
            reason=reason,
            created_at=utcnow(),
        )
    )
    application.status = new_status
    return old_status


def _load(db: Session, application_id: uuid.UUID) -> tuple[Application, Program]:
    application = db.get(Application, application_id)
    if application is None:
        raise NotFoundError("Application not found", code="APPLICATION_NOT_FOUND")
    program = get_program(db, application.program_id)
    return application, program


def _owned_draft(db: Session, actor: Actor, application_id: uuid.UUID) -> tuple[Application, Program]:
    application, program = _load(db, application_id)
    if not owns_application(actor, application):
        raise AuthorizationError("Only the owning company can change this application", code="APPLICATION_FORBIDDEN")
    if application.status != ApplicationStatus.DRAFT:
        raise InvalidStateError("Only draft applications can be changed", code="APPLICATION_NOT_DRAFT")
    return application, program


def _reviewable(db: Session, actor: Actor, application_id: uuid.UUID) -> tuple[Application, Program]:
    application, program = _load(db, application_id)
    if not can_review_application(actor, program):
        raise AuthorizationError("Not allowed to review this application", code="APPLICATION_FORBIDDEN")
    return application, program


def load_for_actor(db: Session, actor: Actor, application_id: uuid.UUID) -> tuple[Application, Program]:
    application, program = _load(db, application_id)
    if not can_access_application(actor, application, program):
        raise AuthorizationError("Access denied to this application", code="APPLICATION_FORBIDDEN")
    return application, program


def load_for_participant(db: Session, actor: Actor, application_id: uuid.UUID) -> tuple[Application, Program]:
    application, program = load_for_actor(db, actor, application_id)
    if not can_participate(actor, application, program):
        raise AuthorizationError("Read-only access to this application", code="APPLICATION_READ_ONLY")
    return application, program


def get_application(
db: Session, actor: Actor, application_id: uuid.UUID) -> Application:
    application, _program = load_for_actor(db, actor, application_id)
    return application


def create_application(
    db: Session,
    actor: Actor,
    program_id: uuid.UUID,
    data: dict[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> Application:
    if actor.role != UserRole.COMPANY:
        raise AuthorizationError("Only companies can apply to programs")
    company_id = require_company(actor)

    program = get_program(db, program_id)
    if not is_open_for_application(program, now):
        raise InvalidStateError("Program is not open for applications", code="PROGRAM_NOT_OPEN")

    existing = db.execute(
        select(Application.id).where(Application.program_id == program.id).where(Application.company_id == company_id)
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("An application already exists for this program", code="APPLICATION_EXISTS")

    application = Application(
        program_id=program.id,
        company_id=company_id,
        data=dict(data or {}),
        status=ApplicationStatus.DRAFT,
    )
    db.add(application)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost the race against a concurrent create for the same pair.
        db.rollback()
        raise ConflictError("An application already exists for this program", code="APPLICATION_EXISTS") from exc
    db.refresh(application)
    logger.info(
        "application created application_id=%s program_id=%s company_id=%s",
        application.id,
        program.id,
        company_id,
    )
    return application


def update_application(db: Session, actor: Actor, application_id: uuid.UUID, data: dict[str, Any]) -> Application:
    application, _program = _owned_draft(db, actor, application_id)
    application.data = dict(data)
    db.commit()
    db.refresh(application)
    logger.info("application updated application_id=%s", application.id)
    return application


def delete_application(db: Session, actor: Actor, application_id: uuid.UUID) -> None:
    application, _program = _owned_draft(db, actor, application_id)
    paths = file_storage.paths_for_application(db, application.id)
    db.delete(application)
    db.commit()
    file_storage.remove_files(paths)
    logger.info("application deleted application_id=%s by=%s", application_id, actor.user_id)


def submit_application(
    db: Session,
    actor: Actor,
    application_id: uuid.UUID,
    *,
    notifier: NotificationStore | None = None,
    now: datetime | None = None,
) -> Application:
    application, program = _owned_draft(db, actor, application_id)
    now = as_utc(now or utcnow())

    if program.status != ProgramStatus.PUBLISHED:
        raise InvalidStateError("Program is not open for applications", code="PROGRAM_NOT_OPEN")
    deadline = as_utc(program.deadline)
    if deadline is not None and deadline < now:
        raise DeadlineExceededError()

    check_transition(application.status, ApplicationStatus.SUBMITTED)
    _record_transition(db, application, ApplicationStatus.SUBMITTED, changed_by=actor.user_id)
    application.submitted_at = now
    db.commit()
    db.refresh(application)
    logger.info("application submitted application_id=%s program_id=%s", application.id, program.id)

    if notifier is not None:
        recipient = organization_user_id(db, program.organization_id)
        company_name = db.execute(select(Company.name).where(Company.id == application.company_id)).scalar_one()
        if recipient is not None:
            notification_service.notify_application_submitted(
                notifier,
                user_id=recipient,
                application_id=application.id,
                program_title=program.title,
                company_name=company_name,
            )
    return application


def update_status(
    db: Session,
    actor: Actor,
    application_id: uuid.UUID,
    new_status: ApplicationStatus,
    *,
    reason: str | None = None,
    notifier: NotificationStore | None = None,
    now: datetime | None = None,
) -> Application:
    application, program = _reviewable(db, actor, application_id)
    new_status = ApplicationStatus(new_status)
    check_transition(application.status, new_status)

    old_status = _record_transition(db, application, new_status, changed_by=actor.user_id, reason=reason)
    application.reviewed_at = as_utc(now or utcnow())
    application.reviewed_by = actor.user_id
    db.commit()
    db.refresh(application)
    logger.info(
        "application status changed application_id=%s old=%s new=%s by=%s",
        application.id,
        old_status.value,
        new_status.value,
        actor.user_id,
    )

    if notifier is not None:
        recipient = company_user_id(db, application.company_id)
        if recipient is not None:
            notification_service.notify_application_status(
                notifier,
                user_id=recipient,
                application_id=application.id,
                program_title=program.title,
                status=new_status,
            )
    return application


def review_application(
    db: Session,
    actor: Actor,
    application_id: uuid.UUID,
    score: float,
    comments: str | None = None,
    *,
    notifier: NotificationStore | None = None,
    now: datetime | None = None,
) -> Application:
    application, program = _reviewable(db, actor, application_id)
    check_transition(application.status, ApplicationStatus.UNDER_REVIEW)

    old_status = _record_transition(
        db,
        application,
        ApplicationStatus.UNDER_REVIEW,
        changed_by=actor.user_id,
        reason=comments,
    )
    application.score = float(score)
    application.review_comments = comments
    application.reviewed_at = as_utc(now or utcnow())
    application.reviewed_by = actor.user_id
    db.commit()
    db.refresh(application)
    logger.info(
        "application reviewed application_id=%s old=%s score=%s by=%s",
        application.id,
        old_status.value,
        application.score,
        actor.user_id,
    )

    if notifier is not None:
        recipient = company_user_id(db, application.company_id)
        if recipient is not None:
            notification_service.notify_application_reviewed(
                notifier,
                user_id=recipient,
                application_id=application.id,
                program_title=program.title,
                score=application.score,
            )
    return application


def _filtered(
    db: Session,
    stmt,
    *,
    status: ApplicationStatus | None = None,
    program_id: uuid.UUID | None = None,
    search: str | None = None,
):
    if status is not None:
        stmt = stmt.where(Application.status == status)
    if program_id is not None:
        stmt = stmt.where(Application.program_id == program_id)
    if search and search.strip():
        stmt = stmt.join(Program, Program.id == Application.program_id).where(
            text_search(search, Program.title, Program.description)
        )
    return stmt.order_by(Application.created_at.desc(), Application.id)


def list_my_applications(
    db: Session,
    actor: Actor,
    *,
    status: ApplicationStatus | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> PageResult:
    if actor.role != UserRole.COMPANY:
        raise AuthorizationError("Only companies have their own applications")
    stmt = select(Application).where(Application.company_id == require_company(actor))
    return paginate(db, _filtered(db, stmt, status=status, search=search), page=page, limit=limit)


def list_applications(
    db: Session,
    actor: Actor,
    *,
    status: ApplicationStatus | None = None,
    program_id: uuid.UUID | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> PageResult:
    stmt = scope_applications(select(Application), actor)
    return paginate(
        db,
        _filtered(db, stmt, status=status, program_id=program_id, search=search),
        page=page,
        limit=limit,
    )


def list_program_applications(
    db: Session,
    actor: Actor,
    program_id: uuid.UUID,
    *,
    status: ApplicationStatus | None = None,
    page: int = 1,
    limit: int = 10,
) -> PageResult:
    program = get_program(db, program_id)
    if not (actor.reads_everything or owns_program(actor, program)):
        raise NotFoundError("Program not found", code="PROGRAM_NOT_FOUND")
    stmt = select(Application).where(Application.program_id == program.id)
    return paginate(db, _filtered(db, stmt, status=status), page=page, limit=limit)


def application_statistics(db: Session, actor: Actor) -> dict[str, Any]:
    scoped_ids = scope_applications(select(Application.id), actor)
    by_status = count_by(db, Application.status, Application.id.in_(scoped_ids))
    for status in ApplicationStatus:
        by_status.setdefault(status.value, 0)
    return {
        "total_applications": sum(by_status.values()),
        "applications_by_status": by_status,
    }


def status_history(db: Session, actor: Actor, application_id: uuid.UUID) -> list[ApplicationStatusHistory]:
    application = get_application(db, actor, application_id)
    stmt = (
        select(ApplicationStatusHistory)
        .where(ApplicationStatusHistory.application_id == application.id)
        .order_by(ApplicationStatusHistory.created_at, ApplicationStatusHistory.id)
    )
    return list(db.execute(stmt).scalars().all())
