from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps import require_roles
from core.database import get_db
from models.enums import UserRole
from schemas.common import ApiResponse, Page, ok, page_payload
from schemas.organization import OrganizationCreate, OrganizationOut, OrganizationStatistics, OrganizationUpdate
from services import account_service
from services.access import Actor, require_organization


router = APIRouter()

_staff = require_roles(UserRole.ADMIN, UserRole.SUPERADMIN)
_superadmin = require_roles(UserRole.SUPERADMIN)
_organization = require_roles(UserRole.ORGANIZATION)
_staff_or_owner = require_roles(UserRole.ORGANIZATION, UserRole.ADMIN, UserRole.SUPERADMIN)


@router.get("", response_model=ApiResponse[Page[OrganizationOut]])
def list_organizations(
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    _actor: Actor = Depends(_staff),
    db: Session = Depends(get_db),
) -> dict:
    result = account_service.list_organizations(db, search=search, page=page, limit=limit)
    return ok(page_payload(result, OrganizationOut))


@router.post("", response_model=ApiResponse[OrganizationOut], status_code=201)
def create_organization(
    payload: OrganizationCreate,
    _actor: Actor = Depends(_superadmin),
    db: Session = Depends(get_db),
) -> dict:
    organization = account_service.create_organization(db, payload)
    return ok(OrganizationOut.model_validate(organization), "Organization created")


@router.get("/me", response_model=ApiResponse[OrganizationOut])
def my_organization(actor: Actor = Depends(_organization), db: Session = Depends(get_db)) -> dict:
    organization = account_service.get_organization(db, require_organization(actor))
    return ok(OrganizationOut.model_validate(organization))


@router.put("/me", response_model=ApiResponse[OrganizationOut])
def update_my_organization(
    payload: OrganizationUpdate,
    actor: Actor = Depends(_organization),
    db: Session = Depends(get_db),
) -> dict:
    organization = account_service.update_organization(db, actor, require_organization(actor), payload)
    return ok(OrganizationOut.model_validate(organization), "Organization updated")


@router.get("/me/statistics", response_model=ApiResponse[OrganizationStatistics])
def my_statistics(actor: Actor = Depends(_organization), db: Session = Depends(get_db)) -> dict:
    return ok(account_service.organization_statistics(db, require_organization(actor)))


@router.get("/{organization_id}", response_model=ApiResponse[OrganizationOut])
def get_organization(
    organization_id: uuid.UUID,
    actor: Actor = Depends(_staff_or_owner),
    db: Session = Depends(get_db),
) -> dict:
    organization = account_service.get_organization_for_actor(db, actor, organization_id)
    return ok(OrganizationOut.model_validate(organization))


@router.put("/{organization_id}", response_model=ApiResponse[OrganizationOut])
def update_organization(
    organization_id: uuid.UUID,
    payload: OrganizationUpdate,
    actor: Actor = Depends(_staff_or_owner),
    db: Session = Depends(get_db),
) -> dict:
    organization = account_service.update_organization(db, actor, organization_id, payload)
    return ok(OrganizationOut.model_validate(organization), "Organization updated")


@router.delete("/{organization_id}", response_model=ApiResponse[None])
def delete_organization(
    organization_id: uuid.UUID,
    _actor: Actor = Depends(_superadmin),
    db: Session = Depends(get_db),
) -> dict:
    account_service.delete_organization(db, organization_id)
    return ok(message="Organization deleted")


@router.get("/{organization_id}/statistics", response_model=ApiResponse[OrganizationStatistics])
def organization_statistics(
    organization_id: uuid.UUID,
    actor: Actor = Depends(_staff_or_owner),
    db: Session = Depends(get_db),
) -> dict:
    account_service.get_organization_for_actor(db, actor, organization_id)
    return ok(account_service.organization_statistics(db, organization_id))
