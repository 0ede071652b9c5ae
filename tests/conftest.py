"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import CHALLENGES, Database
from main import create_app


@pytest.fixture
def database():
    """A Database handle over an in-memory mongomock client."""
    return Database(mongomock.MongoClient(), "ecotrack_test")


@pytest.fixture
def client(database):
    """Test client with the startup hooks run (indexes created)."""
    app = create_app(Settings(), database=database)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_challenge(client):
    """Create a challenge through the API and return the response body."""

    def _make(**overrides):
        payload = {
            "title": "Plastic-free week",
            "category": "Waste Reduction",
            "description": "Avoid single-use plastic for seven days",
            "duration": 7,
            "participants": 0,
        }
        payload.update(overrides)
        response = client.post("/api/challenges", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture
def insert_at(database):
    """Insert a raw document with a fixed createdAt, for ordering tests."""

    def _insert(collection_name, created_at, **fields):
        doc = {**fields, "createdAt": created_at, "updatedAt": created_at}
        database[collection_name].insert_one(doc)
        return doc

    return _insert


@pytest.fixture
def base_time():
    return datetime(2025, 1, 1, 12, 0, 0)


@pytest.fixture
def seeded_challenges(insert_at, base_time):
    """Four challenges spread over categories, participant counts and start dates."""
    rows = [
        ("Bike to work", "Transport", 5, datetime(2025, 3, 1)),
        ("Meatless Mondays", "Food", 12, datetime(2025, 4, 15)),
        ("Cold showers", "Energy", 20, datetime(2025, 5, 1)),
        ("Compost at home", "Waste Reduction", 35, datetime(2025, 6, 10)),
    ]
    for i, (title, category, participants, start) in enumerate(rows):
        insert_at(
            CHALLENGES,
            base_time + timedelta(minutes=i),
            title=title,
            category=category,
            participants=participants,
            startDate=start,
        )
    return rows
