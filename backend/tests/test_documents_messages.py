from __future__ import annotations

import io
from pathlib import Path

import pytest

from core.config import settings
from core.errors import AuthorizationError, NotFoundError, ValidationError
from models.enums import ApplicationStatus, NotificationType, UserRole
from services import account_service, application_service, document_service, message_service, program_service
from services.notification_service import InMemoryNotificationStore


@pytest.fixture
def thread(factory):
    org_user, organization = factory.organization()
    company_user, company = factory.company()
    application = factory.application(factory.program(organization), company, status=ApplicationStatus.SUBMITTED)
    return {
        "org_user": org_user,
        "company_user": company_user,
        "application": application,
        "org": factory.actor(org_user),
        "company": factory.actor(company_user),
    }


def _stored_files(upload_dir: Path) -> list[Path]:
    root = upload_dir / "documents"
    return sorted(root.iterdir()) if root.exists() else []


def _upload(db, actor, application_id, *, content=b"%PDF-1.4 business plan", mimetype="application/pdf", **kw):
    return document_service.upload_document(
        db,
        actor,
        application_id,
        original_name=kw.pop("original_name", "plan.pdf"),
        mimetype=mimetype,
        stream=io.BytesIO(content),
        **kw,
    )


def test_upload_stores_file_and_notifies_counterpart(db, thread, upload_dir):
    notifier = InMemoryNotificationStore()

    document = _upload(db, thread["company"], thread["application"].id, description="Plan", notifier=notifier)

    path = Path(document.path)
    assert path.is_file()
    assert path.parent == upload_dir / "documents"
    assert path.read_bytes() == b"%PDF-1.4 business plan"
    assert document.size == len(b"%PDF-1.4 business plan")
    assert document.original_name == "plan.pdf"

    received = notifier.list_for_user(thread["org_user"].id, offset=0, limit=10)
    assert [n.type for n in received] == [NotificationType.DOCUMENT_UPLOADED]
    assert notifier.count_for_user(thread["company_user"].id) == 0


def test_upload_rejects_unsupported_type(db, thread, upload_dir):
    with pytest.raises(ValidationError) as excinfo:
        _upload(db, thread["company"], thread["application"].id, mimetype="application/x-msdownload")

    assert excinfo.value.code == "UNSUPPORTED_FILE_TYPE"
    assert _stored_files(upload_dir) == []


def test_upload_rejects_oversized_file_and_cleans_up(db, thread, upload_dir, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_bytes", 16)

    with pytest.raises(ValidationError) as excinfo:
        _upload(db, thread["company"], thread["application"].id, content=b"x" * 64)

    assert excinfo.value.code == "FILE_TOO_LARGE"
    assert _stored_files(upload_dir) == []


def test_upload_rejects_empty_file(db, thread, upload_dir):
    with pytest.raises(ValidationError):
        _upload(db, thread["company"], thread["application"].id, content=b"")


def test_other_company_cannot_see_documents(db, factory, thread, upload_dir):
    _upload(db, thread["company"], thread["application"].id)
    outsider_user, _ = factory.company("Outsider")

    with pytest.raises(AuthorizationError):
        document_service.list_documents(db, factory.actor(outsider_user), thread["application"].id)


def test_only_uploader_or_staff_deletes_document(db, factory, thread, upload_dir):
    document = _upload(db, thread["company"], thread["application"].id)
    path = Path(document.path)

    with pytest.raises(AuthorizationError):
        document_service.delete_document(db, thread["org"], document.id)

    document_service.delete_document(db, thread["company"], document.id)
    assert not path.exists()
    assert document_service.list_documents(db, thread["org"], thread["application"].id) == []


def test_missing_file_is_reported(db, thread, upload_dir):
    document = _upload(db, thread["company"], thread["application"].id)
    Path(document.path).unlink()

    with pytest.raises(NotFoundError):
        document_service.document_file(db, thread["org"], document.id)


def test_upload_and_download_over_http(client, thread, headers, upload_dir):
    application_id = thread["application"].id

    res = client.post(
        f"/api/documents/upload/{application_id}",
        files={"document": ("budget.txt", b"line items", "text/plain")},
        data={"description": "Budget"},
        headers=headers(thread["company_user"]),
    )
    assert res.status_code == 201
    document_id = res.json()["data"]["id"]

    res = client.get(f"/api/documents/download/{document_id}", headers=headers(thread["org_user"]))
    assert res.status_code == 200
    assert res.content == b"line items"

    res = client.get("/api/notifications/unread-count", headers=headers(thread["org_user"]))
    assert res.json()["data"]["unread_count"] == 1


def test_messages_flow(db, thread):
    notifier = InMemoryNotificationStore()
    application_id = thread["application"].id

    first = message_service.send_message(db, thread["org"], application_id, "  Please add a budget.  ", notifier=notifier)
    second = message_service.send_message(db, thread["org"], application_id, "And a team CV.", notifier=notifier)
    reply = message_service.send_message(db, thread["company"], application_id, "Done.", notifier=notifier)

    assert first.content == "Please add a budget."
    assert notifier.count_for_user(thread["company_user"].id) == 2
    assert notifier.count_for_user(thread["org_user"].id) == 1
    assert [m.id for m in message_service.list_messages(db, thread["company"], application_id)] == [
        first.id,
        second.id,
        reply.id,
    ]

    assert message_service.unread_count(db, thread["company"]) == 2
    assert message_service.mark_read(db, thread["org"], first.id).read_at is None

    assert message_service.mark_read(db, thread["company"], first.id).read_at is not None
    assert message_service.unread_count(db, thread["company"]) == 1
    assert message_service.mark_all_read(db, thread["company"], application_id) == 1
    assert message_service.unread_count(db, thread["company"]) == 0
    assert message_service.unread_count(db, thread["org"]) == 1


def test_blank_message_is_rejected(db, thread):
    with pytest.raises(ValidationError):
        message_service.send_message(db, thread["company"], thread["application"].id, "   ")


def test_only_sender_or_staff_deletes_message(db, factory, thread):
    message = message_service.send_message(db, thread["company"], thread["application"].id, "Hello")

    with pytest.raises(AuthorizationError):
        message_service.delete_message(db, thread["org"], message.id)

    admin = factory.actor(factory.user(UserRole.ADMIN))
    message_service.delete_message(db, admin, message.id)
    assert message_service.list_messages(db, thread["org"], thread["application"].id) == []


def test_analyst_can_read_threads(db, factory, thread):
    message_service.send_message(db, thread["company"], thread["application"].id, "Hello")
    analyst = factory.actor(factory.user(UserRole.ANALYST))

    assert len(message_service.list_messages(db, analyst, thread["application"].id)) == 1


def test_analyst_cannot_post_to_threads(db, factory, thread, upload_dir):
    message = message_service.send_message(db, thread["company"], thread["application"].id, "Hello")
    analyst = factory.actor(factory.user(UserRole.ANALYST))
    application_id = thread["application"].id

    attempts = (
        lambda: _upload(db, analyst, application_id),
        lambda: message_service.send_message(db, analyst, application_id, "hello"),
        lambda: message_service.mark_read(db, analyst, message.id),
        lambda: message_service.mark_all_read(db, analyst, application_id),
    )
    for attempt in attempts:
        with pytest.raises(AuthorizationError) as excinfo:
            attempt()
        assert excinfo.value.code == "APPLICATION_READ_ONLY"

    assert _stored_files(upload_dir) == []
    db.expire_all()
    assert message_service.list_messages(db, analyst, application_id)[0].read_at is None


def test_admin_can_still_post_to_threads(db, factory, thread):
    admin = factory.actor(factory.user(UserRole.ADMIN))

    message = message_service.send_message(db, admin, thread["application"].id, "Please add the balance sheet")

    assert message.sender_id == admin.user_id


def test_conversations_listing(db, factory, thread, client, headers):
    message_service.send_message(db, thread["company"], thread["application"].id, "Hi there")

    listing = message_service.list_conversations(db, thread["org"])
    assert listing["result"].total == 1
    item = listing["items"][0]
    assert item["application_id"] == thread["application"].id
    assert item["company_name"] == "Acme Robotics"
    assert item["unread_count"] == 1

    res = client.get("/api/messages/conversations", headers=headers(thread["org_user"]))
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["pagination"]["totalPages"] == 1
    assert data["items"][0]["last_message"]["content"] == "Hi there"

    other_user, _ = factory.organization("Elsewhere")
    assert message_service.list_conversations(db, factory.actor(other_user))["result"].total == 0


def test_deleting_draft_application_removes_its_files(db, factory, upload_dir):
    _, organization = factory.organization()
    company_user, company = factory.company()
    application = factory.application(factory.program(organization), company)
    owner = factory.actor(company_user)
    path = Path(_upload(db, owner, application.id).path)
    assert path.is_file()

    application_service.delete_application(db, owner, application.id)

    assert not path.exists()
    assert _stored_files(upload_dir) == []


def test_deleting_program_removes_files_of_its_applications(db, thread, upload_dir):
    path = Path(_upload(db, thread["company"], thread["application"].id).path)
    program_id = thread["application"].program_id

    program_service.delete_program(db, thread["org"], program_id)

    assert not path.exists()


def test_deleting_company_or_organization_removes_files(db, factory, upload_dir):
    org_user, organization = factory.organization()
    company_user, company = factory.company()
    _, other_company = factory.company("Other", "Retail")
    program = factory.program(organization)
    mine = factory.application(program, company, status=ApplicationStatus.SUBMITTED)
    theirs = factory.application(program, other_company, status=ApplicationStatus.SUBMITTED)
    org_actor = factory.actor(org_user)
    mine_path = Path(_upload(db, factory.actor(company_user), mine.id).path)
    theirs_path = Path(_upload(db, org_actor, theirs.id).path)
    company_id, organization_id = company.id, organization.id

    account_service.delete_company(db, company_id)
    assert not mine_path.exists()
    assert theirs_path.is_file()

    account_service.delete_organization(db, organization_id)
    assert not theirs_path.exists()
