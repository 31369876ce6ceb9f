"""
Shared fixtures: in-memory database, API client and signed-in users.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import tripsplit.models  # noqa: F401
from tripsplit.db.base import Base
from tripsplit.db.session import get_db
from tripsplit.main import app
from tripsplit.tests.factories import (
    ALICE, BOB, CAROL, auth_headers, make_item, make_payload, make_totals, split
)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _sign_in(client, claims):
    headers = auth_headers(claims)
    assert client.get("/api/users/me", headers=headers).status_code == 200
    return headers


@pytest.fixture
def alice(client):
    return _sign_in(client, ALICE)


@pytest.fixture
def bob(client):
    return _sign_in(client, BOB)


@pytest.fixture
def carol(client):
    return _sign_in(client, CAROL)


@pytest.fixture
def trip(client, alice, bob, carol):
    """Alice's trip with Bob and Carol as members."""
    response = client.post("/api/trips", json={"tripName": "Penang"}, headers=alice)
    assert response.status_code == 201
    trip_id = response.json()["id"]
    for email in ("bob@example.com", "carol@example.com"):
        added = client.post(f"/api/trips/{trip_id}/members", json={"email": email}, headers=alice)
        assert added.status_code == 201
    return trip_id


@pytest.fixture
def bill(client, alice, trip):
    """Empty bill paid by Alice."""
    response = client.post("/api/bills", json={"tripId": trip, "title": "Dinner"}, headers=alice)
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def sushi_payload(trip):
    """Two items at 6% tax: 21.20 split Alice/Bob, 10.60 split three ways."""
    items = [
        make_item("tmp-salmon", "Salmon Sushi", "2", "10.00", "1.20", "21.20"),
        make_item("tmp-tea", "Green Tea", "1", "10.00", "0.60", "10.60"),
    ]
    splits = [
        split("tmp-salmon", "user-alice", "10.60"),
        split("tmp-salmon", "user-bob", "10.60"),
        split("tmp-tea", "user-alice", "3.54"),
        split("tmp-tea", "user-bob", "3.53"),
        split("tmp-tea", "user-carol", "3.53"),
    ]
    return make_payload(trip, items, splits, make_totals("30.00", "1.80", "31.80"))
