import os

# Keep the app's own engine off disk; tests bind their own in-memory engine below
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEMINI_API_KEY"] = ""
os.environ["OPENROUTER_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from skillsphere import storage
from skillsphere.db import Base, get_db
from skillsphere.gemini_client import get_gemini_client
from skillsphere.main import app

from fakes import FakeGemini


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def ai():
    return FakeGemini()


@pytest.fixture
def client(db_session, ai):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_gemini_client] = lambda: ai
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def no_ai(client):
    app.dependency_overrides[get_gemini_client] = lambda: None
    return client


@pytest.fixture
def user(db_session):
    return storage.create_user(
        db_session,
        username="ada",
        password_hash="!",
        full_name="Ada Lovelace",
        selected_domains=["Web Development", "Data Science"],
    )
