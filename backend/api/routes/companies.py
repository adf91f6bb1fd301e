from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps import require_roles
from core.database import get_db
from models.enums import CompanySize, UserRole
from schemas.common import ApiResponse, Page, ok, page_payload
from schemas.company import CompaniesOverview, CompanyOut, CompanyStatistics, CompanyUpdate
from services import account_service
from services.access import Actor, require_company


router = APIRouter()

_readers = require_roles(UserRole.ADMIN, UserRole.SUPERADMIN, UserRole.ANALYST)
_superadmin = require_roles(UserRole.SUPERADMIN)
_company = require_roles(UserRole.COMPANY)
_readers_or_owner = require_roles(UserRole.COMPANY, UserRole.ADMIN, UserRole.SUPERADMIN, UserRole.ANALYST)
_editors = require_roles(UserRole.COMPANY, UserRole.SUPERADMIN)


@router.get("", response_model=ApiResponse[Page[CompanyOut]])
def list_companies(
    sector: str | None = None,
    size: CompanySize | None = None,
    location: str | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    _actor: Actor = Depends(_readers),
    db: Session = Depends(get_db),
) -> dict:
    result = account_service.list_companies(
        db,
        sector=sector,
        size=size,
        location=location,
        search=search,
        page=page,
        limit=limit,
    )
    return ok(page_payload(result, CompanyOut))


@router.get("/statistics/overview", response_model=ApiResponse[CompaniesOverview])
def companies_overview(_actor: Actor = Depends(_readers), db: Session = Depends(get_db)) -> dict:
    return ok(account_service.companies_overview(db))


@router.get("/me", response_model=ApiResponse[CompanyOut])
def my_company(actor: Actor = Depends(_company), db: Session = Depends(get_db)) -> dict:
    return ok(CompanyOut.model_validate(account_service.get_company(db, require_company(actor))))


@router.put("/me", response_model=ApiResponse[CompanyOut])
def update_my_company(
    payload: CompanyUpdate,
    actor: Actor = Depends(_company),
    db: Session = Depends(get_db),
) -> dict:
    company = account_service.update_company(db, actor, require_company(actor), payload)
    return ok(CompanyOut.model_validate(company), "Company updated")


@router.get("/{company_id}", response_model=ApiResponse[CompanyOut])
def get_company(
    company_id: uuid.UUID,
    actor: Actor = Depends(_readers_or_owner),
    db: Session = Depends(get_db),
) -> dict:
    return ok(CompanyOut.model_validate(account_service.get_company_for_actor(db, actor, company_id)))


@router.put("/{company_id}", response_model=ApiResponse[CompanyOut])
def update_company(
    company_id: uuid.UUID,
    payload: CompanyUpdate,
    actor: Actor = Depends(_editors),
    db: Session = Depends(get_db),
) -> dict:
    company = account_service.update_company(db, actor, company_id, payload)
    return ok(CompanyOut.model_validate(company), "Company updated")


@router.delete("/{company_id}", response_model=ApiResponse[None])
def delete_company(
    company_id: uuid.UUID,
    _actor: Actor = Depends(_superadmin),
    db: Session = Depends(get_db),
) -> dict:
    account_service.delete_company(db, company_id)
    return ok(message="Company deleted")


@router.get("/{company_id}/statistics", response_model=ApiResponse[CompanyStatistics])
def company_statistics(
    company_id: uuid.UUID,
    actor: Actor = Depends(_readers_or_owner),
    db: Session = Depends(get_db),
) -> dict:
    account_service.get_company_for_actor(db, actor, company_id)
    return ok(account_service.company_statistics(db, company_id))
