import os

# Settings and the engine are created at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-access-secret"
os.environ["REFRESH_SECRET_KEY"] = "test-refresh-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "development"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.database import Base, get_db
from app.crud.organization import organization as organization_crud
from app.crud.membership import membership as membership_crud
from app.crud.user import user as user_crud
from app.schemas.organization import OrganizationCreate
from main import app

DEFAULT_PASSWORD = "Passw0rd"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield TestingSessionLocal
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make_user(email="alice@example.com", password=DEFAULT_PASSWORD, display_name=None, is_active=True):
        return user_crud.create(
            db,
            email=email,
            password=password,
            display_name=display_name or email.split("@")[0],
            is_active=is_active,
        )
    return _make_user


@pytest.fixture
def make_org(db):
    def _make_org(name, admin, members=()):
        organization, _ = organization_crud.create_with_admin(
            db, obj_in=OrganizationCreate(name=name), user_id=admin.id
        )
        for user, role in members:
            membership_crud.create(db, user_id=user.id, organization_id=organization.id, role=role)
        return organization
    return _make_org


def login(client, email="alice@example.com", password=DEFAULT_PASSWORD):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response


def auth_headers(response):
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}


def use_refresh_cookie(client, token):
    """Replace whatever refresh cookie the client holds with ``token``."""
    client.cookies.clear()
    client.cookies.set(settings.REFRESH_COOKIE_NAME, token)
