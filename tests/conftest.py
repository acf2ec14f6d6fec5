from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from portal.core.security import create_access_token, get_password_hash
from portal.db.base import Base
from portal.db.models.enums import BusinessUnit, Role
from portal.db.models.user import User
from portal.main import app
from portal.routers import cron, deps

TODAY = date(2024, 3, 10)
NOW = datetime(2024, 3, 10, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


def make_user(db, username, role=Role.EMPLOYEE, business_unit=BusinessUnit.G3, email=None, payroll_day=None):
    user = User(
        username=username,
        hashed_password=get_password_hash("secret123"),
        full_name=username.title(),
        email=email,
        role=role.value,
        business_unit=business_unit.value,
        payroll_day=payroll_day,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return make_user(db, "admin", Role.ADMIN, email="admin@g3.example.com")


@pytest.fixture
def employee(db):
    return make_user(db, "employee", payroll_day=31)


class FakeSender:
    """Records sent emails; addresses in `failing` raise instead."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent = []

    async def __call__(self, to, subject, template_name, context):
        if to in self.failing:
            raise ConnectionError(f"SMTP refused {to}")
        self.sent.append((to, subject, template_name, context))


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def client(engine, sender):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_today] = lambda: TODAY
    app.dependency_overrides[deps.get_now] = lambda: NOW
    app.dependency_overrides[cron.get_sender] = lambda: sender
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user):
    token = create_access_token({"sub": user.username, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def employee_headers(employee):
    return auth_headers(employee)
