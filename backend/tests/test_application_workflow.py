from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.orm.exc import StaleDataError

from core.config import settings
from core.database import SessionLocal
from core.errors import (
    AuthorizationError,
    ConflictError,
    DeadlineExceededError,
    InvalidStateError,
)
from core.timeutils import as_utc, utcnow
from models import Application
from models.enums import ApplicationStatus, ProgramStatus, UserRole
from services import application_service, program_service
from services.notification_service import InMemoryNotificationStore

from conftest import program_payload


NON_DRAFT = [
    ApplicationStatus.SUBMITTED,
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.APPROVED,
    ApplicationStatus.REJECTED,
]


@pytest.fixture
def scenario(factory):
    org_user, organization = factory.organization()
    company_user, company = factory.company()
    program = factory.program(organization)
    return {
        "org_user": org_user,
        "organization": organization,
        "company_user": company_user,
        "company": company,
        "program": program,
    }


@pytest.mark.parametrize("first_status", list(ApplicationStatus))
def test_second_application_for_same_pair_conflicts(db, factory, scenario, first_status):
    factory.application(scenario["program"], scenario["company"], status=first_status)
    actor = factory.actor(scenario["company_user"])

    with pytest.raises(ConflictError):
        application_service.create_application(db, actor, scenario["program"].id, {"answer": 1})


def test_other_company_may_apply_to_same_program(db, factory, scenario):
    factory.application(scenario["program"], scenario["company"])
    other_user, other = factory.company("Beta Foods", "Agriculture")

    application = application_service.create_application(db, factory.actor(other_user), scenario["program"].id)

    assert application.company_id == other.id
    assert application.status == ApplicationStatus.DRAFT


@pytest.mark.parametrize("status", [ProgramStatus.DRAFT, ProgramStatus.CLOSED, ProgramStatus.ARCHIVED])
def test_create_requires_published_program(db, factory, scenario, status):
    program = factory.program(scenario["organization"], status=status)

    with pytest.raises(InvalidStateError):
        application_service.create_application(db, factory.actor(scenario["company_user"]), program.id)


def test_create_rejected_after_deadline_even_when_published(db, factory, scenario):
    program = factory.program(scenario["organization"], deadline=utcnow() - timedelta(days=1))

    with pytest.raises(InvalidStateError) as excinfo:
        application_service.create_application(db, factory.actor(scenario["company_user"]), program.id)

    assert excinfo.value.code == "PROGRAM_NOT_OPEN"


def test_create_allowed_without_deadline(db, factory, scenario):
    program = factory.program(scenario["organization"], deadline=None)

    application = application_service.create_application(db, factory.actor(scenario["company_user"]), program.id)

    assert application.status == ApplicationStatus.DRAFT


def test_only_companies_can_apply(db, factory, scenario):
    with pytest.raises(AuthorizationError):
        application_service.create_application(db, factory.actor(scenario["org_user"]), scenario["program"].id)


def test_submit_rejected_once_program_closes(db, factory, scenario):
    application = factory.application(scenario["program"], scenario["company"])
    scenario["program"].status = ProgramStatus.CLOSED
    db.commit()

    with pytest.raises(InvalidStateError):
        application_service.submit_application(db, factory.actor(scenario["company_user"]), application.id)


def test_submit_rejected_after_deadline(db, factory, scenario):
    application = factory.application(scenario["program"], scenario["company"])
    later = utcnow() + timedelta(days=31)

    with pytest.raises(DeadlineExceededError):
        application_service.submit_application(
            db, factory.actor(scenario["company_user"]), application.id, now=later
        )

    db.expire_all()
    assert db.get(Application, application.id).status == ApplicationStatus.DRAFT


@pytest.mark.parametrize("status", NON_DRAFT)
def test_update_and_delete_only_while_draft(db, factory, scenario, status):
    application = factory.application(scenario["program"], scenario["company"], status=status)
    actor = factory.actor(scenario["company_user"])

    with pytest.raises(InvalidStateError):
        application_service.update_application(db, actor, application.id, {"answer": 2})
    with pytest.raises(InvalidStateError):
        application_service.delete_application(db, actor, application.id)


def test_draft_can_be_updated_and_deleted_by_owner(db, factory, scenario):
    application = factory.application(scenario["program"], scenario["company"])
    application_id = application.id
    actor = factory.actor(scenario["company_user"])

    updated = application_service.update_application(db, actor, application_id, {"team_size": 12})
    assert updated.data == {"team_size": 12}

    application_service.delete_application(db, actor, application_id)
    db.expire_all()
    assert db.get(Application, application_id) is None


def test_other_company_cannot_touch_draft(db, factory, scenario):
    application = factory.application(scenario["program"], scenario["company"])
    other_user, _ = factory.company("Other Co")

    with pytest.raises(AuthorizationError):
        application_service.update_application(db, factory.actor(other_user), application.id, {})


def test_happy_path_from_draft_program_to_approval(db, factory):
    org_user, _ = factory.organization()
    company_user, company = factory.company()
    org = factory.actor(org_user)
    applicant = factory.actor(company_user)
    notifier = InMemoryNotificationStore()

    program = program_service.create_program(db, org, program_payload())
    assert program.status == ProgramStatus.DRAFT
    program = program_service.set_program_status(db, org, program.id, ProgramStatus.PUBLISHED)

    application = application_service.create_application(db, applicant, program.id, {"pitch": "Robots"})
    assert application.status == ApplicationStatus.DRAFT
    assert application.company_id == company.id

    application = application_service.submit_application(db, applicant, application.id, notifier=notifier)
    assert application.status == ApplicationStatus.SUBMITTED
    assert application.submitted_at is not None
    assert notifier.count_for_user(org_user.id) == 1

    application = application_service.review_application(db, org, application.id, 85, notifier=notifier)
    assert application.status == ApplicationStatus.UNDER_REVIEW
    assert application.score == 85
    first_review = as_utc(application.reviewed_at)

    application = application_service.update_status(
        db, org, application.id, ApplicationStatus.APPROVED, notifier=notifier
    )
    assert application.status == ApplicationStatus.APPROVED
    assert as_utc(application.reviewed_at) >= first_review
    assert application.reviewed_by == org_user.id
    assert notifier.count_for_user(company_user.id) == 2

    history = application_service.status_history(db, org, application.id)
    assert [(h.old_status, h.new_status) for h in history] == [
        (ApplicationStatus.DRAFT, ApplicationStatus.SUBMITTED),
        (ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW),
        (ApplicationStatus.UNDER_REVIEW, ApplicationStatus.APPROVED),
    ]


def test_review_persists_comments(db, factory, scenario):
    application = factory.application(scenario["program"], scenario["company"], status=ApplicationStatus.SUBMITTED)
    org = factory.actor(scenario["org_user"])

    application = application_service.review_application(db, org, application.id, 72.5, "Solid market analysis")

    assert application.review_comments == "Solid market analysis"
    history = application_service.status_history(db, org, application.id)
    assert history[-1].reason == "Solid market analysis"


def test_other_organization_cannot_update_status(db, factory, scenario):
    application = factory.application(scenario["program"], scenario["company"], status=ApplicationStatus.SUBMITTED)
    intruder_user, _ = factory.organization("Rival Fund")

    with pytest.raises(AuthorizationError):
        application_service.update_status(
            db, factory.actor(intruder_user), application.id, ApplicationStatus.APPROVED
        )
    with pytest.raises(AuthorizationError):
        application_service.review_application(db, factory.actor(intruder_user), application.id, 50)


def test_analyst_can_read_but_not_review(db, factory, scenario):
    application = factory.application(scenario["program"], scenario["company"], status=ApplicationStatus.SUBMITTED)
    analyst = factory.actor(factory.user(UserRole.ANALYST))

    assert application_service.get_application(db, analyst, application.id).id == application.id
    with pytest.raises(AuthorizationError):
        application_service.update_status(db, analyst, application.id, ApplicationStatus.REJECTED)


def test_status_updates_are_permissive_by_default(db, factory, scenario):
    application = factory.application(scenario["program"], scenario["company"], status=ApplicationStatus.REJECTED)
    org = factory.actor(scenario["org_user"])

    application = application_service.update_status(db, org, application.id, ApplicationStatus.SUBMITTED)

    assert application.status == ApplicationStatus.SUBMITTED


def test_strict_transitions_lock_terminal_states(db, factory, scenario, monkeypatch):
    monkeypatch.setattr(settings, "strict_status_transitions", True)
    application = factory.application(scenario["program"], scenario["company"], status=ApplicationStatus.APPROVED)
    org = factory.actor(scenario["org_user"])

    with pytest.raises(InvalidStateError) as excinfo:
        application_service.update_status(db, org, application.id, ApplicationStatus.REJECTED)
    assert excinfo.value.code == "INVALID_TRANSITION"


def test_strict_transitions_allow_the_forward_path(db, factory, scenario, monkeypatch):
    monkeypatch.setattr(settings, "strict_status_transitions", True)
    application = factory.application(scenario["program"], scenario["company"], status=ApplicationStatus.SUBMITTED)
    org = factory.actor(scenario["org_user"])

    application_service.review_application(db, org, application.id, 40)
    application_service.review_application(db, org, application.id, 60)
    application = application_service.update_status(db, org, application.id, ApplicationStatus.REJECTED)

    assert application.status == ApplicationStatus.REJECTED
    assert application.score == 60


def test_check_transition_ignores_graph_when_not_strict():
    application_service.check_transition(ApplicationStatus.APPROVED, ApplicationStatus.DRAFT, strict=False)
    with pytest.raises(InvalidStateError):
        application_service.check_transition(ApplicationStatus.DRAFT, ApplicationStatus.APPROVED, strict=True)


def test_concurrent_review_is_rejected(factory, scenario):
    application = factory.application(scenario["program"], scenario["company"], status=ApplicationStatus.SUBMITTED)

    first = SessionLocal()
    second = SessionLocal()
    try:
        a = first.get(Application, application.id)
        b = second.get(Application, application.id)

        a.status = ApplicationStatus.APPROVED
        first.commit()

        b.status = ApplicationStatus.REJECTED
        with pytest.raises(StaleDataError):
            second.commit()
        second.rollback()
    finally:
        first.close()
        second.close()


def test_listings_are_scoped_by_role(db, factory, scenario):
    mine = factory.application(scenario["program"], scenario["company"])
    other_user, other_company = factory.company("Other Co")
    factory.application(scenario["program"], other_company)
    _, rival = factory.organization("Rival Fund")
    rival_program = factory.program(rival)
    factory.application(rival_program, scenario["company"])

    own = application_service.list_my_applications(db, factory.actor(scenario["company_user"]))
    assert own.total == 2
    assert mine.id in {a.id for a in own.items}

    org = factory.actor(scenario["org_user"])
    assert application_service.list_applications(db, org).total == 2
    assert application_service.list_applications(db, org, program_id=rival_program.id).total == 0

    analyst = factory.actor(factory.user(UserRole.ANALYST))
    assert application_service.list_applications(db, analyst).total == 3

    stats = application_service.application_statistics(db, org)
    assert stats["total_applications"] == 2
    assert stats["applications_by_status"]["DRAFT"] == 2
    assert stats["applications_by_status"]["APPROVED"] == 0
