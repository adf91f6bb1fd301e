from __future__ import annotations

import os
import tempfile
from datetime import timedelta
from pathlib import Path

import pytest

_TMP_DIR = Path(tempfile.mkdtemp(prefix="growf-tests-"))

# Settings are read at import time; configure them before importing the app.
os.environ["DATABASE_URL"] = f"sqlite:///{(_TMP_DIR / 'growf-test.db').as_posix()}"
os.environ["JWT_SECRET_KEY"] = "test-only-secret-key-0123456789abcdef"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"
os.environ["AUTO_CREATE_SCHEMA"] = "false"
os.environ["UPLOAD_DIR"] = str(_TMP_DIR / "uploads")
os.environ["STRICT_STATUS_TRANSITIONS"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from core.database import ENGINE, SessionLocal  # noqa: E402
from core.security import create_access_token, hash_password  # noqa: E402
from core.timeutils import utcnow  # noqa: E402
from models import Application, Base, Company, Organization, Program, User  # noqa: E402
from models.enums import ApplicationStatus, CompanySize, ProgramStatus, UserRole  # noqa: E402
from services.access import resolve_actor  # noqa: E402


PASSWORD = "correct-horse-battery"


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=ENGINE)
    yield
    Base.metadata.drop_all(bind=ENGINE)


@pytest.fixture(autouse=True)
def _reset_login_rate_limit():
    from api.routes import auth

    auth._login_attempts.clear()
    yield
    auth._login_attempts.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    from main import app

    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    from core.config import settings

    target = tmp_path / "uploads"
    monkeypatch.setattr(settings, "upload_dir", str(target))
    return target


def program_payload(**overrides) -> dict:
    payload = {
        "title": "Green Innovation Grant",
        "description": "Funding for low-carbon industrial projects.",
        "sector": ["Energy", "Industry"],
        "location": ["Paris"],
        "company_size": ["SMALL", "MEDIUM"],
        "tags": ["green"],
        "amount_min": 10000,
        "amount_max": 50000,
        "deadline": utcnow() + timedelta(days=30),
        "criteria": {"min_employees": 5},
    }
    payload.update(overrides)
    return payload


class Factory:
    def __init__(self, db) -> None:
        self.db = db
        self._seq = 0

    def _email(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}{self._seq}@example.com"

    def user(self, role: UserRole, *, email: str | None = None) -> User:
        user = User(
            email=email or self._email(role.value.lower()),
            password_hash=hash_password(PASSWORD),
            role=role,
            is_active=True,
            is_verified=True,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def organization(self, name: str = "Regional Fund") -> tuple[User, Organization]:
        user = self.user(UserRole.ORGANIZATION)
        organization = Organization(user_id=user.id, name=name, type="PUBLIC_AGENCY")
        self.db.add(organization)
        self.db.commit()
        self.db.refresh(organization)
        return user, organization

    def company(self, name: str = "Acme Robotics", sector: str = "Industry") -> tuple[User, Company]:
        user = self.user(UserRole.COMPANY)
        company = Company(
            user_id=user.id,
            name=name,
            sector=sector,
            size=CompanySize.SMALL,
            location="Paris",
        )
        self.db.add(company)
        self.db.commit()
        self.db.refresh(company)
        return user, company

    def program(
        self,
        organization: Organization,
        *,
        status: ProgramStatus = ProgramStatus.PUBLISHED,
        deadline=...,
        **overrides,
    ) -> Program:
        values = program_payload(**overrides)
        values["deadline"] = values["deadline"] if deadline is ... else deadline
        program = Program(organization_id=organization.id, status=status, **values)
        self.db.add(program)
        self.db.commit()
        self.db.refresh(program)
        return program

    def application(
        self,
        program: Program,
        company: Company,
        *,
        status: ApplicationStatus = ApplicationStatus.DRAFT,
    ) -> Application:
        application = Application(program_id=program.id, company_id=company.id, data={}, status=status)
        self.db.add(application)
        self.db.commit()
        self.db.refresh(application)
        return application

    def actor(self, user: User):
        return resolve_actor(self.db, user)


@pytest.fixture
def factory(db) -> Factory:
    return Factory(db)


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user_id=str(user.id), email=user.email, role=UserRole(user.role).value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers
