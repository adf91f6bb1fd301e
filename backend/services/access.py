"""Role and ownership predicates shared by every workflow.

One predicate per capability instead of role checks scattered through the
routes. An :class:`Actor` is the authenticated user plus the organization or
company profile they own, resolved once per request.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import false, select
from sqlalchemy.orm import Session

from core.errors import NotFoundError
from models.application import Application
from models.company import Company
from models.enums import READ_ALL_ROLES, STAFF_ROLES, UserRole
from models.organization import Organization
from models.program import Program
from models.user import User


@dataclass(frozen=True)
class Actor:
    user_id: uuid.UUID
    role: UserRole
    email: str = ""
    organization_id: uuid.UUID | None = None
    company_id: uuid.UUID | None = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def reads_everything(self) -> bool:
        return self.role in READ_ALL_ROLES


def resolve_actor(db: Session, user: User) -> Actor:
    organization_id = None
    company_id = None
    if user.role == UserRole.ORGANIZATION:
        organization_id = db.execute(
            select(Organization.id).where(Organization.user_id == user.id)
        ).scalar_one_or_none()
    elif user.role == UserRole.COMPANY:
        company_id = db.execute(select(Company.id).where(Company.user_id == user.id)).scalar_one_or_none()
    return Actor(
        user_id=user.id,
        role=UserRole(user.role),
        email=user.email,
        organization_id=organization_id,
        company_id=company_id,
    )


def require_organization(actor: Actor) -> uuid.UUID:
    if actor.organization_id is None:
        raise NotFoundError("Organization not found", code="ORGANIZATION_NOT_FOUND")
    return actor.organization_id


def require_company(actor: Actor) -> uuid.UUID:
    if actor.company_id is None:
        raise NotFoundError("Company not found", code="COMPANY_NOT_FOUND")
    return actor.company_id


def owns_program(actor: Actor, program: Program) -> bool:
    return (
        actor.role == UserRole.ORGANIZATION
        and actor.organization_id is not None
        and actor.organization_id == program.organization_id
    )


def can_manage_program(actor: Actor, program: Program) -> bool:
    return actor.is_staff or owns_program(actor, program)


def can_review_application(actor: Actor, program: Program) -> bool:
    """Reviewer predicate: ADMIN/SUPERADMIN, or the organization owning the parent program."""

    return actor.is_staff or owns_program(actor, program)


def owns_application(actor: Actor, application: Application) -> bool:
    return (
        actor.role == UserRole.COMPANY
        and actor.company_id is not None
        and actor.company_id == application.company_id
    )


def can_access_application(actor: Actor, application: Application, program: Program) -> bool:
    return actor.reads_everything or owns_application(actor, application) or owns_program(actor, program)


def can_participate(actor: Actor, application: Application, program: Program) -> bool:
    """Upload documents or post messages on an application thread; analysts only read."""

    return actor.is_staff or owns_application(actor, application) or owns_program(actor, program)



def scope_programs(stmt, actor: Actor):
    if actor.reads_everything:
        return stmt
    if actor.role == UserRole.ORGANIZATION:
        return stmt.where(Program.organization_id == require_organization(actor))
    return stmt.where(false())


def scope_applications(stmt, actor: Actor):
    if actor.reads_everything:
        return stmt
    if actor.role == UserRole.COMPANY:
        return stmt.where(Application.company_id == require_company(actor))
    if actor.role == UserRole.ORGANIZATION:
        owned = select(Program.id).where(Program.organization_id == require_organization(actor))
        return stmt.where(Application.program_id.in_(owned))
    return stmt.where(false())


def organization_user_id(db: Session, organization_id: uuid.UUID) -> uuid.UUID | None:
    return db.execute(select(Organization.user_id).where(Organization.id == organization_id)).scalar_one_or_none()


def company_user_id(db: Session, company_id: uuid.UUID) -> uuid.UUID | None:
    return db.execute(select(Company.user_id).where(Company.id == company_id)).scalar_one_or_none()


def counterpart_user_id(db: Session, actor: Actor, application: Application, program: Program) -> uuid.UUID | None:
    """The user on the other side of an application thread from ``actor``."""

    if owns_application(actor, application):
        return organization_user_id(db, program.organization_id)
    return company_user_id(db, application.company_id)
