import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from roomhub.core.config import settings
from roomhub.db.session import Base, get_db, make_engine
from roomhub.main import app
from roomhub.models import Visibility
from roomhub.services.access import AccessCoordinator

# bcrypt's minimum cost keeps password tests fast
settings.bcrypt_rounds = 4


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def coordinator(db):
    return AccessCoordinator(db)


@pytest.fixture
def make_room(coordinator):
    """Create a room through the coordinator and return it with its owner id."""

    def _make_room(name="Design Jam", visibility=Visibility.public, password=None, max_participants=None, owner_id=None):
        owner_id = owner_id or uuid.uuid4()
        result = coordinator.create_room(
            owner_id,
            name,
            description="",
            visibility=visibility,
            password=password,
            max_participants=max_participants,
        )
        assert result.success, result.message
        return result.value.room, owner_id

    return _make_room


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def signup(client):
    """Register an anonymous user and return (user_id, auth headers)."""

    def _signup(display_name="guest"):
        response = client.post("/auth/anonymous", json={"display_name": display_name})
        assert response.status_code == 200
        data = response.json()
        return uuid.UUID(data["user_id"]), {"Authorization": f"Bearer {data['access_token']}"}

    return _signup
