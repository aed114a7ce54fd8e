"""
Shared fixtures: in-memory SQLite database, a profiled user, and a
TestClient wired to the same session.
"""
import os
import sys
from datetime import date
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from riseora import auth as auth_module
from riseora.auth import create_access_token, hash_password
from riseora.database import Base, get_db
from riseora.main import app
from riseora.models.db_models import UserDB

TEST_API_KEY = "test-template-key"


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def make_user(db_session, email="jane@example.com", username="jane", **profile):
    defaults = {
        "first_name": "Jane",
        "last_name": "Doe",
        "date_of_birth": date(1985, 4, 12),
        "ssn_last_4": "1234",
        "street_address": "123 Main St",
        "city": "Austin",
        "state": "TX",
        "zip_code": "78701",
    }
    defaults.update(profile)
    user = UserDB(
        id=str(uuid4()),
        email=email,
        username=username,
        password_hash=hash_password("correct-horse"),
        **defaults,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def user(db_session):
    return make_user(db_session)


@pytest.fixture
def other_user(db_session):
    return make_user(db_session, email="sam@example.com", username="sam")


@pytest.fixture
def auth_headers(user):
    token = create_access_token(user.id, user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api_key_headers(monkeypatch):
    monkeypatch.setattr(auth_module, "API_KEY", TEST_API_KEY)
    return {"Authorization": f"Bearer {TEST_API_KEY}"}


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    # No context manager: the startup hook would create tables on the real database
    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()
