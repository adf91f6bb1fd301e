from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError
from core.security import hash_password, verify_password
from models.application import Application
from models.company import Company
from models.enums import ApplicationStatus, ProgramStatus, UserRole
from models.organization import Organization
from models.program import Program
from models.user import User
from schemas.auth import RegisterRequest
from schemas.company import CompanyUpdate
from schemas.organization import OrganizationCreate, OrganizationUpdate
from services import file_storage
from services.access import Actor
from services.listing import PageResult, count_by, paginate, text_search


logger = logging.getLogger(__name__)


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(func.lower(User.email) == email.strip().lower())).scalar_one_or_none()


def _ensure_email_free(db: Session, email: str) -> None:
    if get_user_by_email(db, email) is not None:
        raise ConflictError("An account with this email already exists", code="EMAIL_TAKEN")


def _commit_new_account(db: Session, user: User, email: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info("account creation conflict email=%s", email)
        raise ConflictError("An account with this email already exists", code="EMAIL_TAKEN") from exc
    db.refresh(user)


def register_user(db: Session, payload: RegisterRequest) -> User:
    """Create a COMPANY or ORGANIZATION user together with its profile in one transaction."""

    _ensure_email_free(db, payload.email)
    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=UserRole(payload.role),
        is_active=True,
        is_verified=False,
    )
    db.add(user)
    db.flush()

    if user.role == UserRole.ORGANIZATION:
        db.add(Organization(user_id=user.id, name=payload.name, type=payload.organization_type))
    else:
        db.add(
            Company(
                user_id=user.id,
                name=payload.name,
                sector=payload.sector,
                size=payload.size,
                location=payload.location,
            )
        )
    _commit_new_account(db, user, payload.email)
    logger.info("user registered user_id=%s role=%s", user.id, user.role.value)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("login failed email=%r known_user=%s", email, user is not None)
        raise AuthenticationError("Invalid email or password", code="INVALID_CREDENTIALS")
    if not user.is_active:
        logger.warning("login failed (disabled user) user_id=%s", user.id)
        raise AuthorizationError("Account is disabled", code="ACCOUNT_DISABLED")
    return user


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise AuthenticationError("Current password is incorrect", code="INVALID_CREDENTIALS")
    user.password_hash = hash_password(new_password)
    db.commit()
    logger.info("password changed user_id=%s", user.id)


# --- organizations -----------------------------------------------------------


def get_organization(db: Session, organization_id: uuid.UUID) -> Organization:
    organization = db.get(Organization, organization_id)
    if organization is None:
        raise NotFoundError("Organization not found", code="ORGANIZATION_NOT_FOUND")
    return organization


def get_organization_for_actor(db: Session, actor: Actor, organization_id: uuid.UUID) -> Organization:
    organization = get_organization(db, organization_id)
    if not (actor.is_staff or actor.organization_id == organization.id):
        raise AuthorizationError("Access denied to this organization")
    return organization


def create_organization(db: Session, payload: OrganizationCreate) -> Organization:
    _ensure_email_free(db, payload.email)
    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=UserRole.ORGANIZATION,
        is_active=True,
        is_verified=True,
    )
    db.add(user)
    db.flush()
    organization = Organization(user_id=user.id, **payload.model_dump(exclude={"email", "password"}))
    db.add(organization)
    _commit_new_account(db, user, payload.email)
    db.refresh(organization)
    logger.info("organization created organization_id=%s user_id=%s", organization.id, user.id)
    return organization


def list_organizations(db: Session, *, search: str | None = None, page: int = 1, limit: int = 10) -> PageResult:
    stmt = select(Organization)
    if search and search.strip():
        stmt = stmt.where(text_search(search, Organization.name))
    stmt = stmt.order_by(Organization.created_at.desc(), Organization.id)
    return paginate(db, stmt, page=page, limit=limit)


def update_organization(
    db: Session, actor: Actor, organization_id: uuid.UUID, patch: OrganizationUpdate
) -> Organization:
    organization = get_organization(db, organization_id)
    if not (actor.role == UserRole.SUPERADMIN or actor.organization_id == organization.id):
        raise AuthorizationError("Not allowed to update this organization")
    values = patch.model_dump(exclude_unset=True)
    for key in ("name", "type"):
        if key in values and values[key] is None:
            values.pop(key)
    for key, value in values.items():
        setattr(organization, key, value)
    db.commit()
    db.refresh(organization)
    logger.info("organization updated organization_id=%s fields=%s", organization.id, sorted(values))
    return organization


def delete_organization(db: Session, organization_id: uuid.UUID) -> None:
    """Delete the organization and its user atomically; programs cascade."""

    organization = get_organization(db, organization_id)
    user = db.get(User, organization.user_id)
    paths = file_storage.paths_for_organization(db, organization.id)
    try:
        db.delete(organization)
        db.flush()
        if user is not None:
            db.delete(user)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("organization delete rolled back organization_id=%s", organization_id)
        raise
    file_storage.remove_files(paths)
    logger.info("organization deleted organization_id=%s", organization_id)


def organization_statistics(db: Session, organization_id: uuid.UUID) -> dict[str, Any]:
    organization = get_organization(db, organization_id)
    programs = count_by(db, Program.status, Program.organization_id == organization.id)
    for status in ProgramStatus:
        programs.setdefault(status.value, 0)
    owned = select(Program.id).where(Program.organization_id == organization.id)
    applications = count_by(db, Application.status, Application.program_id.in_(owned))
    for status in ApplicationStatus:
        applications.setdefault(status.value, 0)
    return {
        "total_programs": sum(programs.values()),
        "programs_by_status": programs,
        "total_applications": sum(applications.values()),
        "applications_by_status": applications,
    }


# --- companies ---------------------------------------------------------------


def get_company(db: Session, company_id: uuid.UUID) -> Company:
    company = db.get(Company, company_id)
    if company is None:
        raise NotFoundError("Company not found", code="COMPANY_NOT_FOUND")
    return company


def get_company_for_actor(db: Session, actor: Actor, company_id: uuid.UUID) -> Company:
    company = get_company(db, company_id)
    if not (actor.reads_everything or actor.company_id == company.id):
        raise AuthorizationError("Access denied to this company")
    return company


def list_companies(
    db: Session,
    *,
    sector: str | None = None,
    size: str | None = None,
    location: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> PageResult:
    stmt = select(Company)
    if sector:
        stmt = stmt.where(Company.sector == sector)
    if size:
        stmt = stmt.where(Company.size == size)
    if location and location.strip():
        stmt = stmt.where(text_search(location, Company.location))
    if search and search.strip():
        stmt = stmt.where(text_search(search, Company.name, Company.description))
    stmt = stmt.order_by(Company.created_at.desc(), Company.id)
    return paginate(db, stmt, page=page, limit=limit)


def update_company(db: Session, actor: Actor, company_id: uuid.UUID, patch: CompanyUpdate) -> Company:
    company = get_company(db, company_id)
    if not (actor.role == UserRole.SUPERADMIN or actor.company_id == company.id):
        raise AuthorizationError("Not allowed to update this company")
    values = patch.model_dump(exclude_unset=True)
    for key in ("name", "sector", "size", "location"):
        if key in values and values[key] is None:
            values.pop(key)
    if values.get("siret"):
        taken = db.execute(
            select(Company.id).where(Company.siret == values["siret"]).where(Company.id != company.id)
        ).scalar_one_or_none()
        if taken is not None:
            raise ConflictError("SIRET already registered", code="SIRET_TAKEN")
    for key, value in values.items():
        setattr(company, key, value)
    db.commit()
    db.refresh(company)
    logger.info("company updated company_id=%s fields=%s", company.id, sorted(values))
    return company


def delete_company(db: Session, company_id: uuid.UUID) -> None:
    """Delete the company and its user atomically; applications cascade."""

    company = get_company(db, company_id)
    user = db.get(User, company.user_id)
    paths = file_storage.paths_for_company(db, company.id)
    try:
        db.delete(company)
        db.flush()
        if user is not None:
            db.delete(user)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("company delete rolled back company_id=%s", company_id)
        raise
    file_storage.remove_files(paths)
    logger.info("company deleted company_id=%s", company_id)


def company_statistics(db: Session, company_id: uuid.UUID) -> dict[str, Any]:
    company = get_company(db, company_id)
    by_status = count_by(db, Application.status, Application.company_id == company.id)
    for status in ApplicationStatus:
        by_status.setdefault(status.value, 0)
    decided = by_status[ApplicationStatus.APPROVED.value] + by_status[ApplicationStatus.REJECTED.value]
    approval_rate = round(by_status[ApplicationStatus.APPROVED.value] / decided * 100, 2) if decided else None
    return {
        "total_applications": sum(by_status.values()),
        "applications_by_status": by_status,
        "approval_rate": approval_rate,
    }


def companies_overview(db: Session) -> dict[str, Any]:
    by_size = count_by(db, Company.size)
    by_sector = count_by(db, Company.sector)
    return {
        "total_companies": sum(by_size.values()),
        "companies_by_size": by_size,
        "companies_by_sector": by_sector,
    }
