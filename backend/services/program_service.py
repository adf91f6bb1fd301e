from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from core.errors import AuthorizationError, NotFoundError, ValidationError
from core.timeutils import as_utc, utcnow
from models.application import Application
from models.enums import ProgramStatus, UserRole
from models.organization import Organization
from models.program import Program
from schemas.program import ProgramCreate, ProgramUpdate
from services import file_storage
from services.access import Actor, can_manage_program, require_organization, scope_programs
from services.listing import PageResult, count_by, paginate, tag_contains, text_search


logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"

# Attributes copied by duplicate_program; identity, owner, status and timestamps are not.
_COPIED_FIELDS = (
    "title",
    "description",
    "sector",
    "location",
    "company_size",
    "tags",
    "amount_min",
    "amount_max",
    "deadline",
    "criteria",
    "requirements",
    "application_form",
)


def is_open_for_application(program: Program, now: datetime | None = None) -> bool:
    if program.status != ProgramStatus.PUBLISHED:
        return False
    deadline = as_utc(program.deadline)
    if deadline is None:
        return True
    return deadline >= as_utc(now or utcnow())


def open_for_application_clause(now: datetime):
    return and_(
        Program.status == ProgramStatus.PUBLISHED,
        or_(Program.deadline.is_(None), Program.deadline >= now),
    )


def coerce_payload(model: type[BaseModel], payload: Any) -> BaseModel:
    """Accept a schema instance or a plain mapping; schema errors become ValidationError."""

    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "body" for err in exc.errors())
        raise ValidationError(f"Invalid data: {fields}") from exc


def _tag_list(values) -> list[str]:
    out: list[str] = []
    for v in values or []:
        text = str(getattr(v, "value", v)).strip()
        if text and text not in out:
            out.append(text)
    return out


def _column_values(payload: BaseModel, *, exclude_unset: bool = False) -> dict[str, Any]:
    values = payload.model_dump(exclude_unset=exclude_unset, exclude={"organization_id"})
    for key in ("sector", "location", "company_size", "tags"):
        if key in values and values[key] is not None:
            values[key] = _tag_list(values[key])
    if values.get("deadline") is not None:
        values["deadline"] = as_utc(values["deadline"])
    return values


def get_program(db: Session, program_id: uuid.UUID) -> Program:
    program = db.get(Program, program_id)
    if program is None:
        raise NotFoundError("Program not found", code="PROGRAM_NOT_FOUND")
    return program


def get_program_for_actor(db: Session, actor: Actor, program_id: uuid.UUID) -> Program:
    program = get_program(db, program_id)
    if not (actor.reads_everything or can_manage_program(actor, program)):
        raise NotFoundError("Program not found", code="PROGRAM_NOT_FOUND")
    return program


def _managed_program(db: Session, actor: Actor, program_id: uuid.UUID) -> Program:
    program = get_program(db, program_id)
    if not can_manage_program(actor, program):
        raise AuthorizationError("Not allowed to manage this program", code="PROGRAM_FORBIDDEN")
    return program


def create_program(db: Session, actor: Actor, attributes: ProgramCreate | dict[str, Any]) -> Program:
    payload = coerce_payload(ProgramCreate, attributes)

    if actor.role == UserRole.ORGANIZATION:
        organization_id = require_organization(actor)
    elif actor.is_staff:
        organization_id = payload.organization_id
        if organization_id is None:
            raise ValidationError("organization_id is required", code="ORGANIZATION_ID_REQUIRED")
        if db.get(Organization, organization_id) is None:
            raise NotFoundError("Organization not found", code="ORGANIZATION_NOT_FOUND")
    else:
        raise AuthorizationError("Only organizations and admins can create programs")

    program = Program(organization_id=organization_id, status=ProgramStatus.DRAFT, **_column_values(payload))
    db.add(program)
    db.commit()
    db.refresh(program)
    logger.info("program created program_id=%s organization_id=%s by=%s", program.id, organization_id, actor.user_id)
    return program


def update_program(db: Session, actor: Actor, program_id: uuid.UUID, patch: ProgramUpdate | dict[str, Any]) -> Program:
    payload = coerce_payload(ProgramUpdate, patch)
    program = _managed_program(db, actor, program_id)

    values = _column_values(payload, exclude_unset=True)
    for key in ("title", "description", "sector", "location", "company_size", "tags", "criteria"):
        if key in values and values[key] is None:
            raise ValidationError(f"{key} cannot be null")

    amount_min = values.get("amount_min", program.amount_min)
    amount_max = values.get("amount_max", program.amount_max)
    if amount_min is not None and amount_max is not None and amount_min > amount_max:
        raise ValidationError("amount_min must be less than or equal to amount_max", code="INVALID_AMOUNT_RANGE")

    for key, value in values.items():
        setattr(program, key, value)
    db.commit()
    db.refresh(program)
    logger.info("program updated program_id=%s fields=%s by=%s", program.id, sorted(values), actor.user_id)
    return program


def set_program_status(db: Session, actor: Actor, program_id: uuid.UUID, new_status: ProgramStatus) -> Program:
    """Overwrite the program status; any status may move to any other."""

    program = _managed_program(db, actor, program_id)
    old_status = program.status
    program.status = ProgramStatus(new_status)
    db.commit()
    db.refresh(program)
    logger.info(
        "program status changed program_id=%s old=%s new=%s by=%s",
        program.id,
        getattr(old_status, "value", old_status),
        program.status.value,
        actor.user_id,
    )
    return program


def duplicate_program(db: Session, actor: Actor, program_id: uuid.UUID) -> Program:
    source = _managed_program(db, actor, program_id)
    values = {field: getattr(source, field) for field in _COPIED_FIELDS}
    values["title"] = f"{source.title}{COPY_SUFFIX}"
    copy = Program(organization_id=source.organization_id, status=ProgramStatus.DRAFT, **values)
    db.add(copy)
    db.commit()
    db.refresh(copy)
    logger.info("program duplicated source_id=%s copy_id=%s by=%s", source.id, copy.id, actor.user_id)
    return copy


def delete_program(db: Session, actor: Actor, program_id: uuid.UUID) -> None:
    program = _managed_program(db, actor, program_id)
    paths = file_storage.paths_for_program(db, program.id)
    db.delete(program)
    db.commit()
    file_storage.remove_files(paths)
    logger.info("program deleted program_id=%s by=%s", program_id, actor.user_id)


def list_programs(
    db: Session,
    actor: Actor,
    *,
    status: ProgramStatus | None = None,
    sector: str | None = None,
    location: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> PageResult:
    stmt = scope_programs(select(Program), actor)
    if status is not None:
        stmt = stmt.where(Program.status == status)
    if sector:
        stmt = stmt.where(tag_contains(db, Program.sector, sector))
    if location:
        stmt = stmt.where(tag_contains(db, Program.location, location))
    if search and search.strip():
        stmt = stmt.where(text_search(search, Program.title, Program.description))
    stmt = stmt.order_by(Program.created_at.desc(), Program.id)
    return paginate(db, stmt, page=page, limit=limit)


def list_public_programs(
    db: Session,
    *,
    sector: str | None = None,
    location: str | None = None,
    company_size: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
    now: datetime | None = None,
) -> PageResult:
    stmt = select(Program).where(open_for_application_clause(now or utcnow()))
    if sector:
        stmt = stmt.where(tag_contains(db, Program.sector, sector))
    if location:
        stmt = stmt.where(tag_contains(db, Program.location, location))
    if company_size:
        stmt = stmt.where(tag_contains(db, Program.company_size, company_size))
    if search and search.strip():
        stmt = stmt.where(text_search(search, Program.title, Program.description))
    stmt = stmt.order_by(Program.deadline.asc().nulls_last(), Program.created_at.desc(), Program.id)
    return paginate(db, stmt, page=page, limit=limit)


def get_public_program(db: Session, program_id: uuid.UUID, *, now: datetime | None = None) -> Program:
    program = db.get(Program, program_id)
    if program is None or not is_open_for_application(program, now):
        raise NotFoundError("Program not found or not available", code="PROGRAM_NOT_AVAILABLE")
    return program


def count_applications(db: Session, program_id: uuid.UUID) -> int:
    return int(
        db.execute(select(func.count()).select_from(Application).where(Application.program_id == program_id)).scalar_one()
    )


def program_statistics(db: Session, actor: Actor, program_id: uuid.UUID) -> dict[str, Any]:
    program = get_program_for_actor(db, actor, program_id)
    by_status = count_by(db, Application.status, Application.program_id == program.id)
    return {
        "program_id": program.id,
        "status": program.status,
        "total_applications": sum(by_status.values()),
        "applications_by_status": by_status,
    }
