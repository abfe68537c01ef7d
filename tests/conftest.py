"""
Shared pytest fixtures: in-memory SQLite, FastAPI TestClient and a fake extractor.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["COOKIE_SECURE"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["APP_TIMEZONE"] = "UTC"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shopguide.database import Base, get_db
from shopguide.main import app
from shopguide.models import User

# StaticPool ensures all connections share the same in-memory database
_ENGINE = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_Session = sessionmaker(autocommit=False, autoflush=False, bind=_ENGINE)


class FakeExtractor:
    """Stands in for the vision model; records every call."""

    def __init__(self, text: str = "", error: Exception | None = None):
        self.text = text
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def extract(self, document: str, media_type: str) -> str:
        self.calls.append((document, media_type))
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture(autouse=True)
def _reset_tables():
    Base.metadata.create_all(bind=_ENGINE)
    yield
    Base.metadata.drop_all(bind=_ENGINE)


@pytest.fixture()
def db():
    session = _Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def user(db):
    u = User(session_key="test-session-key", name="Test User")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture()
def client(db):
    def _override():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _override
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def logged_in(client):
    resp = client.post("/api/session", json={"name": "Test User", "email": "test@example.com"})
    assert resp.status_code == 200
    return client


@pytest.fixture()
def make_extractor():
    return FakeExtractor
