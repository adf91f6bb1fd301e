from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from core.errors import AuthorizationError, NotFoundError, ValidationError
from core.timeutils import utcnow
from models import Application, Program
from models.enums import ProgramStatus, UserRole
from services import program_service
from services.program_service import is_open_for_application

from conftest import program_payload


def test_create_program_starts_as_draft_for_owning_organization(db, factory):
    org_user, organization = factory.organization()
    actor = factory.actor(org_user)

    program = program_service.create_program(db, actor, program_payload(status="PUBLISHED"))

    assert program.status == ProgramStatus.DRAFT
    assert program.organization_id == organization.id
    assert program.company_size == ["SMALL", "MEDIUM"]


@pytest.mark.parametrize("missing", ["title", "description", "sector", "location", "company_size"])
def test_create_program_requires_core_attributes(db, factory, missing):
    org_user, _ = factory.organization()
    payload = program_payload()
    payload.pop(missing)

    with pytest.raises(ValidationError):
        program_service.create_program(db, factory.actor(org_user), payload)


def test_create_program_rejects_inverted_amount_range(db, factory):
    org_user, _ = factory.organization()

    with pytest.raises(ValidationError):
        program_service.create_program(db, factory.actor(org_user), program_payload(amount_min=900, amount_max=100))


def test_admin_must_name_an_existing_organization(db, factory):
    admin = factory.actor(factory.user(UserRole.ADMIN))
    _, organization = factory.organization()

    with pytest.raises(ValidationError):
        program_service.create_program(db, admin, program_payload())

    program = program_service.create_program(db, admin, program_payload(organization_id=organization.id))
    assert program.organization_id == organization.id


def test_company_cannot_create_program(db, factory):
    company_user, _ = factory.company()

    with pytest.raises(AuthorizationError):
        program_service.create_program(db, factory.actor(company_user), program_payload())


def test_set_status_is_permissive_for_owner(db, factory):
    org_user, organization = factory.organization()
    actor = factory.actor(org_user)
    program = factory.program(organization, status=ProgramStatus.ARCHIVED)

    # Any status may move to any other.
    for status in (ProgramStatus.DRAFT, ProgramStatus.CLOSED, ProgramStatus.PUBLISHED, ProgramStatus.ARCHIVED):
        program = program_service.set_program_status(db, actor, program.id, status)
        assert program.status == status


def test_set_status_denied_for_other_organization(db, factory):
    _, owner = factory.organization("Owner Fund")
    other_user, _ = factory.organization("Other Fund")
    program = factory.program(owner, status=ProgramStatus.DRAFT)

    with pytest.raises(AuthorizationError):
        program_service.set_program_status(db, factory.actor(other_user), program.id, ProgramStatus.PUBLISHED)


def test_superadmin_can_set_status_on_any_program(db, factory):
    _, organization = factory.organization()
    program = factory.program(organization, status=ProgramStatus.DRAFT)
    superadmin = factory.actor(factory.user(UserRole.SUPERADMIN))

    program = program_service.set_program_status(db, superadmin, program.id, ProgramStatus.PUBLISHED)

    assert program.status == ProgramStatus.PUBLISHED


def test_duplicate_copies_attributes_as_new_draft(db, factory):
    org_user, organization = factory.organization()
    source = factory.program(organization, status=ProgramStatus.PUBLISHED, title="Export Boost")

    copy = program_service.duplicate_program(db, factory.actor(org_user), source.id)

    assert copy.id != source.id
    assert copy.title == "Export Boost (Copy)"
    assert copy.status == ProgramStatus.DRAFT
    assert copy.organization_id == source.organization_id
    assert copy.sector == source.sector
    assert copy.criteria == source.criteria
    assert copy.amount_max == source.amount_max


def test_delete_program_cascades_to_applications(db, factory):
    org_user, organization = factory.organization()
    _, company = factory.company()
    program = factory.program(organization)
    application = factory.application(program, company)
    application_id = application.id
    program_id = program.id

    program_service.delete_program(db, factory.actor(org_user), program_id)
    db.expire_all()

    assert db.get(Program, program_id) is None
    assert db.execute(select(Application).where(Application.id == application_id)).scalar_one_or_none() is None


def test_update_program_revalidates_amount_range_against_stored_values(db, factory):
    org_user, organization = factory.organization()
    program = factory.program(organization, amount_min=1000, amount_max=2000)
    actor = factory.actor(org_user)

    with pytest.raises(ValidationError):
        program_service.update_program(db, actor, program.id, {"amount_min": 5000})

    program = program_service.update_program(db, actor, program.id, {"amount_max": 8000, "title": "Renamed"})
    assert program.amount_max == 8000
    assert program.title == "Renamed"
    assert program.status == ProgramStatus.PUBLISHED


def test_is_open_for_application_is_pure():
    now = utcnow()
    future = Program(status=ProgramStatus.PUBLISHED, deadline=now + timedelta(days=1))
    past = Program(status=ProgramStatus.PUBLISHED, deadline=now - timedelta(seconds=1))
    open_ended = Program(status=ProgramStatus.PUBLISHED, deadline=None)
    draft = Program(status=ProgramStatus.DRAFT, deadline=None)
    at_deadline = Program(status=ProgramStatus.PUBLISHED, deadline=now)

    for _ in range(3):
        assert is_open_for_application(future, now) is True
        assert is_open_for_application(past, now) is False
        assert is_open_for_application(open_ended, now) is True
        assert is_open_for_application(draft, now) is False
        assert is_open_for_application(at_deadline, now) is True


def test_public_listing_only_returns_open_programs(db, factory):
    _, organization = factory.organization()
    open_program = factory.program(organization, title="Open call")
    no_deadline = factory.program(organization, title="Rolling call", deadline=None)
    factory.program(organization, title="Expired call", deadline=utcnow() - timedelta(days=1))
    factory.program(organization, title="Draft call", status=ProgramStatus.DRAFT)
    factory.program(organization, title="Closed call", status=ProgramStatus.CLOSED)

    result = program_service.list_public_programs(db)

    assert {p.id for p in result.items} == {open_program.id, no_deadline.id}
    assert result.total == 2


def test_public_listing_filters_by_tag_and_search(db, factory):
    _, organization = factory.organization()
    agri = factory.program(organization, title="Farm Modernisation", sector=["Agriculture"], location=["Lyon"])
    factory.program(organization, title="Fintech Seed", sector=["FinTech"], location=["Paris"])

    assert [p.id for p in program_service.list_public_programs(db, sector="Agriculture").items] == [agri.id]
    assert [p.id for p in program_service.list_public_programs(db, location="Lyon").items] == [agri.id]
    assert program_service.list_public_programs(db, sector="Tech").total == 0
    assert [p.id for p in program_service.list_public_programs(db, search="farm").items] == [agri.id]
    assert program_service.list_public_programs(db, search="100%").total == 0


def test_get_public_program_hides_unavailable_programs(db, factory):
    _, organization = factory.organization()
    draft = factory.program(organization, status=ProgramStatus.DRAFT)
    published = factory.program(organization)

    assert program_service.get_public_program(db, published.id).id == published.id
    with pytest.raises(NotFoundError):
        program_service.get_public_program(db, draft.id)


def test_organization_listing_is_scoped_to_owned_programs(db, factory):
    org_user, mine = factory.organization("Mine")
    _, theirs = factory.organization("Theirs")
    own = factory.program(mine, status=ProgramStatus.DRAFT)
    factory.program(theirs)

    result = program_service.list_programs(db, factory.actor(org_user))
    assert [p.id for p in result.items] == [own.id]

    admin = factory.actor(factory.user(UserRole.ADMIN))
    assert program_service.list_programs(db, admin).total == 2
    assert program_service.list_programs(db, admin, status=ProgramStatus.DRAFT).total == 1
