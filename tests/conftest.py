"""Shared fixtures: an in-memory SQLite database behind the FastAPI app."""

import os

# Must be set before `config` is imported by the app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_USER_IDS"] = "admin"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db import Base, get_db
from main import app

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    db = TestingSession()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    """TestClient with a fresh schema for every test."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def lab(client):
    response = client.post("/api/labs", json={"title": "Hábitos de 21 días"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def grant(client):
    """Give a learner an active entitlement for a lab."""

    def _grant(lab_id, member_id, active=True):
        response = client.put(
            f"/api/labs/{lab_id}/entitlements/{member_id}",
            params={"user_id": "admin"},
            json={"grant": active},
        )
        assert response.status_code == 200
        return response.json()

    return _grant
