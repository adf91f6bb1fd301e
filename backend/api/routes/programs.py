from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps import require_roles
from core.database import get_db
from models.enums import ProgramStatus, UserRole
from schemas.common import ApiResponse, Page, StatusBreakdown, ok, page_payload
from schemas.program import ProgramCreate, ProgramOut, ProgramStatusUpdate, ProgramUpdate
from services import program_service
from services.access import Actor


router = APIRouter()

_managers = require_roles(UserRole.ORGANIZATION, UserRole.ADMIN, UserRole.SUPERADMIN)
_readers = require_roles(UserRole.ORGANIZATION, UserRole.ADMIN, UserRole.SUPERADMIN, UserRole.ANALYST)


class ProgramDetail(ProgramOut):
    application_count: int = 0


class ProgramStatistics(StatusBreakdown):
    program_id: uuid.UUID
    status: ProgramStatus


@router.get("/public", response_model=ApiResponse[Page[ProgramOut]])
def list_public_programs(
    sector: str | None = None,
    location: str | None = None,
    company_size: str | None = Query(default=None, alias="companySize"),
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> dict:
    result = program_service.list_public_programs(
        db,
        sector=sector,
        location=location,
        company_size=company_size,
        search=search,
        page=page,
        limit=limit,
    )
    return ok(page_payload(result, ProgramOut))


@router.get("/public/{program_id}", response_model=ApiResponse[ProgramOut])
def get_public_program(program_id: uuid.UUID, db: Session = Depends(get_db)) -> dict:
    return ok(ProgramOut.model_validate(program_service.get_public_program(db, program_id)))


@router.get("", response_model=ApiResponse[Page[ProgramOut]])
def list_programs(
    status: ProgramStatus | None = None,
    sector: str | None = None,
    location: str | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(_readers),
    db: Session = Depends(get_db),
) -> dict:
    result = program_service.list_programs(
        db,
        actor,
        status=status,
        sector=sector,
        location=location,
        search=search,
        page=page,
        limit=limit,
    )
    return ok(page_payload(result, ProgramOut))


@router.post("", response_model=ApiResponse[ProgramOut], status_code=201)
def create_program(
    payload: ProgramCreate,
    actor: Actor = Depends(_managers),
    db: Session = Depends(get_db),
) -> dict:
    program = program_service.create_program(db, actor, payload)
    return ok(ProgramOut.model_validate(program), "Program created")


@router.get("/{program_id}", response_model=ApiResponse[ProgramDetail])
def get_program(
    program_id: uuid.UUID,
    actor: Actor = Depends(_readers),
    db: Session = Depends(get_db),
) -> dict:
    program = program_service.get_program_for_actor(db, actor, program_id)
    detail = ProgramDetail.model_validate(program)
    detail.application_count = program_service.count_applications(db, program.id)
    return ok(detail)


@router.put("/{program_id}", response_model=ApiResponse[ProgramOut])
def update_program(
    program_id: uuid.UUID,
    payload: ProgramUpdate,
    actor: Actor = Depends(_managers),
    db: Session = Depends(get_db),
) -> dict:
    program = program_service.update_program(db, actor, program_id, payload)
    return ok(ProgramOut.model_validate(program), "Program updated")


@router.patch("/{program_id}/status", response_model=ApiResponse[ProgramOut])
def set_program_status(
    program_id: uuid.UUID,
    payload: ProgramStatusUpdate,
    actor: Actor = Depends(_managers),
    db: Session = Depends(get_db),
) -> dict:
    program = program_service.set_program_status(db, actor, program_id, payload.status)
    return ok(ProgramOut.model_validate(program), "Program status updated")


@router.post("/{program_id}/duplicate", response_model=ApiResponse[ProgramOut], status_code=201)
def duplicate_program(
    program_id: uuid.UUID,
    actor: Actor = Depends(_managers),
    db: Session = Depends(get_db),
) -> dict:
    copy = program_service.duplicate_program(db, actor, program_id)
    return ok(ProgramOut.model_validate(copy), "Program duplicated")


@router.delete("/{program_id}", response_model=ApiResponse[None])
def delete_program(
    program_id: uuid.UUID,
    actor: Actor = Depends(_managers),
    db: Session = Depends(get_db),
) -> dict:
    program_service.delete_program(db, actor, program_id)
    return ok(message="Program deleted")


@router.get("/{program_id}/statistics", response_model=ApiResponse[ProgramStatistics])
def program_statistics(
    program_id: uuid.UUID,
    actor: Actor = Depends(_readers),
    db: Session = Depends(get_db),
) -> dict:
    return ok(program_service.program_statistics(db, actor, program_id))
